import logging
import sys
from pathlib import Path

# Создаем директорию для логов, если её нет
log_dir = Path(__file__).parent
log_dir.mkdir(exist_ok=True)

# Настраиваем логирование в файл и консоль
def setup_logging(name: str = "api_logger", filename: str = "api_requests.log") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    
    # При повторном импорте не дублируем обработчики
    if logger.handlers:
        return logger
    
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    
    file_handler = logging.FileHandler(log_dir / filename, encoding="utf-8")
    file_handler.setFormatter(formatter)
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    
    return logger

# Общий логгер запросов и фоновых AI задач
api_logger = setup_logging()
