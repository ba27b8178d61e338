"""Turns a user message plus history into a CompletionRequest.

The turn list is wire-neutral; every adapter maps it to its own body. Order is
fixed: one system turn carrying the answer conventions the intent classifier
relies on, then prior user/assistant turns oldest first, then the new message.
Stored system turns are never replayed.
"""

from shellpilot.providers.types import CompletionRequest, Turn

DEFAULT_SYSTEM_PROMPT = """You are a terminal assistant that helps with shell commands and project files.

When the user wants to run a command or perform a shell action:
- Respond with the command in a bash code block like this:
```bash
command here
```
- Keep explanations brief, focus on the command
- If multiple steps are needed, suggest one command at a time

When the user wants to create or change a file:
- Put the complete new file content in a fenced block whose info string is the
  language followed by the relative path, like this:
```python src/app.py
print("hello")
```
- Propose one file per response

When the user wants an explanation or information:
- Provide a clear, concise answer without code blocks
- Only include code blocks if demonstrating syntax

Explicit mode markers (user can force a mode):
- `!` at start or `/run` at start = always suggest a command
- `?` at end = always provide explanation, never suggest command"""

COMMAND_MODE_INSTRUCTION = "The user wants a command. Answer with exactly one bash code block."
EXPLAIN_MODE_INSTRUCTION = "The user wants an explanation only. Do not propose commands or file changes."

MAX_PROMPT_CHARS = 100_000

_MODE_INSTRUCTIONS = {
    "command": COMMAND_MODE_INSTRUCTION,
    "explain": EXPLAIN_MODE_INSTRUCTION,
}


class PromptTooLargeError(Exception):
    """The rendered turns hold more characters than the configured ceiling.

    Only the two sizes are kept; the prompt itself never reaches the message.
    """

    def __init__(self, actual_size: int, max_size: int):
        super().__init__(f"Prompt is {actual_size} characters, limit is {max_size}")
        self.actual_size = actual_size
        self.max_size = max_size


def render_prompt(
    user_content: str,
    history: list[Turn],
    *,
    mode: str = "auto",
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
) -> list[Turn]:
    """Lay out the turns for one request.

    Args:
        user_content: The new message, with any mode marker already removed.
        history: Earlier turns, oldest first.
        mode: "auto", "command" or "explain". A forced mode adds one line of
            instruction to the system turn.
        system_prompt: Base system instructions.
    """
    extra = _MODE_INSTRUCTIONS.get(mode)
    system = f"{system_prompt}\n\n{extra}" if extra else system_prompt
    return [
        Turn(role="system", content=system),
        *(turn for turn in history if turn.role != "system"),
        Turn(role="user", content=user_content),
    ]


def validate_prompt_size(turns: list[Turn], max_chars: int = MAX_PROMPT_CHARS) -> None:
    """Raise PromptTooLargeError when the summed turn content is over ``max_chars``."""
    size = sum(len(turn.content) for turn in turns)
    if size > max_chars:
        raise PromptTooLargeError(size, max_chars)


def build_request(
    user_content: str,
    history: list[Turn],
    *,
    max_tokens: int,
    temperature: float | None = None,
    model: str | None = None,
    mode: str = "auto",
    max_chars: int = MAX_PROMPT_CHARS,
) -> CompletionRequest:
    """Render, size-check, and wrap a prompt into a CompletionRequest.

    Raises:
        PromptTooLargeError: If the rendered prompt is over max_chars.
    """
    turns = render_prompt(user_content, history, mode=mode)
    validate_prompt_size(turns, max_chars)
    return CompletionRequest(
        messages=turns,
        max_tokens=max_tokens,
        temperature=temperature,
        model=model,
    )
