"""
Interactive terminal prompts: pick an archive, confirm a yes/no question.
"""

from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

InputFunc = Callable[[str], str]


def select_option(message: str, options: Sequence[T],
                  labels: Optional[List[str]] = None,
                  input_func: InputFunc = input,
                  output_func: Callable[[str], None] = print,
                  default: int = 1) -> T:
    """
    Ask the user to pick one of several options by number.

    Empty input selects ``default`` (1-based). Invalid input re-asks.

    Raises:
        ValueError: If there are no options
        EOFError: If input is closed before a choice is made
    """
    if not options:
        raise ValueError("No options to choose from")

    labels = labels or [str(option) for option in options]
    output_func(message)
    for index, label in enumerate(labels, start=1):
        output_func(f"  {index}) {label}")

    while True:
        answer = input_func(f"Choice [1-{len(options)}] ({default}): ").strip()
        if not answer:
            return options[default - 1]
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        output_func(f"Please enter a number between 1 and {len(options)}.")


def confirm(message: str, default: bool = False,
            input_func: InputFunc = input) -> bool:
    """Ask a yes/no question. Empty input or EOF returns ``default``."""
    suffix = "[Y/n]" if default else "[y/N]"
    while True:
        try:
            answer = input_func(f"{message} {suffix} ").strip().lower()
        except EOFError:
            return default
        if not answer:
            return default
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
