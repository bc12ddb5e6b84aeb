from typing import Callable, Optional, Sequence, TypeVar

import questionary

T = TypeVar("T")


def select_item(message: str, items: Sequence[T], formatter: Callable[[T], str]) -> Optional[T]:
    """Let the user pick exactly one item.

    Returns None when the list is empty or the user aborts the prompt
    (Ctrl-C / Esc); callers must treat that as "do nothing".
    """
    if not items:
        return None

    choices = [questionary.Choice(title=formatter(item), value=index) for index, item in enumerate(items)]
    selected = questionary.select(message, choices=choices).ask()

    if selected is None:
        return None
    return items[selected]
