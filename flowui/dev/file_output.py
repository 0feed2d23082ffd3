# file_output.py
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from flowui.diagnostics import WriteConflictError


class WriteDecision(Enum):
    BACKUP_AND_OVERWRITE = "backup"
    OVERWRITE = "overwrite"
    CANCEL = "cancel"


Decider = Callable[[Path], WriteDecision]


def backup_path(path: Path, now: Optional[datetime] = None) -> Path:
    """"UI_Library_Main.py" -> "UI_Library_Main_20240101120000.bak.py"."""
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return path.with_name(f"{path.stem}_{stamp}.bak{path.suffix}")


def write_unit(path, content: str, decide: Optional[Decider] = None) -> Optional[Path]:
    """Write a generated unit, asking decide(path) first when the file exists.

    Returns:
        The written path, or None when the decision was CANCEL.

    Raises:
        WriteConflictError: the file exists and no decider was given.
    """
    target = Path(path)
    if target.exists():
        if decide is None:
            raise WriteConflictError(target)
        decision = decide(target)
        if decision == WriteDecision.CANCEL:
            print(f"⏭️  Skipped {target.name}")
            return None
        if decision == WriteDecision.BACKUP_AND_OVERWRITE:
            backup = backup_path(target)
            backup.write_bytes(target.read_bytes())
            print(f"💾 Backup created: {backup.name}")

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(content)
    print(f"✅ Generated {target}")
    return target


def always(decision: WriteDecision) -> Decider:
    return lambda _path: decision
