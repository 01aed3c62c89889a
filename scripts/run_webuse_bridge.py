#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[webuse] backend={os.environ.get('WEBUSE_BACKEND_URL', 'ws://localhost:9999/ws')} | "
    f"devtools={os.environ.get('WEBUSE_CDP_HOST', '127.0.0.1')}:{os.environ.get('WEBUSE_CDP_PORT', '9222')} | "
    f"state={os.environ.get('WEBUSE_STATE_DIR', '~/.auracrab/webuse')}",
    file=sys.stderr,
)

from auracrab.webuse.main import main  # noqa: E402

if __name__ == "__main__":
    main()
