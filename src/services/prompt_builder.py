from typing import Dict, List, Optional, Sequence

from src.models.ai_iteration import AiIteration

SYSTEM_PROMPT = (
    "You are a helpful AI assistant that works on tasks. Given a task title and "
    "description, provide a detailed solution, plan, or result. Be concise but "
    "thorough. Write in the same language as the task. Format your response with "
    "clear structure using markdown. If the user gives feedback on a previous "
    "result, revise that result according to the feedback."
)

Message = Dict[str, str]


def format_task_message(title: str, description: Optional[str]) -> str:
    if description:
        return f"Task: {title}\n\nDescription: {description}"
    return f"Task: {title}"


def format_feedback_message(number: int, feedback: str) -> str:
    return f"feedback on iteration #{number}: {feedback}"


def build_transcript(
    task,
    iterations: Sequence[AiIteration],
    new_feedback: Optional[str] = None,
) -> List[Message]:
    """
    Assemble the chat transcript sent to the completion provider.
    
    Order is chronological: system instruction, the task itself, then every
    previous result followed by the feedback written about it. Feedback that
    is not yet stored on the latest iteration goes last as a plain message.
    
    ``task`` is anything with ``title`` and ``description`` (a Task row or
    an AiJob snapshot).
    """
    messages: List[Message] = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": format_task_message(task.title, task.description)},
    ]
    
    ordered = sorted(iterations, key=lambda it: it.number)
    for iteration in ordered:
        messages.append({"role": "assistant", "content": iteration.result})
        if iteration.feedback:
            messages.append({
                "role": "user",
                "content": format_feedback_message(iteration.number, iteration.feedback),
            })
    
    if new_feedback and (not ordered or not ordered[-1].feedback):
        messages.append({"role": "user", "content": new_feedback})
    
    return messages
