# client/tree.py
from typing import List


def render_tree(names: List[str], dir_name: str = "/") -> str:
    if dir_name == "/":
        dir_name = "root"
    lines = [f"{dir_name.rstrip('/')}/"]
    for i, name in enumerate(names):
        branch = "└─ " if i == len(names) - 1 else "├─ "
        lines.append(branch + name)
    return "\n".join(lines)
