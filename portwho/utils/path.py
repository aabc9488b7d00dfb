import os
from pathlib import Path
from typing import Optional

CONFIG_DIR = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config") / "portwho"

def to_abs_path(p: Optional[str | os.PathLike]) -> Optional[Path]:
    """Convert p to an absolute path.
    Sequence:
      1) Absolute: expanduser+resolve
      2) Relative to CWD
      3) Relative to the user config folder (CONFIG_DIR)
    """
    if not p:
        return None
    pp = Path(p).expanduser()
    if pp.is_absolute():
        return pp.resolve()
    p1 = (Path.cwd() / pp)
    if p1.exists():
        return p1.resolve()
    p2 = (CONFIG_DIR / pp)
    return p2.resolve()
