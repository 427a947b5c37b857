#!/usr/bin/env python
"""
End-to-end local smoke test:

1) python -m build
2) create fresh .venv-chatstore-test
3) pip install the built wheel into that venv
4) open a store in a temp dir, write a chat, read it back, print stats
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parent.parent  # assuming script is in ./scripts/
DIST_DIR = ROOT / "dist"
VENV_DIR = ROOT / ".venv-chatstore-test"


def run(cmd, cwd=None):
    """Run a command, print it, and fail fast on error."""
    print(f"\n$ {' '.join(cmd)}")
    subprocess.run(cmd, cwd=cwd, check=True)


def build_python_package():
    """Run python -m build to create sdist + wheel in ./dist/."""
    if DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)

    print("[python] Building package with python -m build")
    run([sys.executable, "-m", "build"], cwd=ROOT)


def create_fresh_venv():
    """Delete old venv and create a new one."""
    if VENV_DIR.exists():
        print(f"[venv] Removing existing venv at {VENV_DIR}")
        shutil.rmtree(VENV_DIR)

    print(f"[venv] Creating venv at {VENV_DIR}")
    run([sys.executable, "-m", "venv", str(VENV_DIR)])

    if os.name == "nt":
        return VENV_DIR / "Scripts" / "python.exe"
    return VENV_DIR / "bin" / "python"


def install_wheel_in_venv(venv_python: Path):
    wheels = sorted(DIST_DIR.glob("chatstore-*.whl"))
    if not wheels:
        raise RuntimeError("No chatstore-*.whl found in dist/")

    wheel = wheels[-1]  # most recent
    print(f"[venv] Using wheel: {wheel.name}")
    run([str(venv_python), "-m", "pip", "install", "--upgrade", "pip"])
    run([str(venv_python), "-m", "pip", "install", str(wheel)])


def smoke_test_store(venv_python: Path):
    """Round-trip one chat through a real data dir inside the venv."""
    code = r"""
import asyncio, json, tempfile
import chatstore
from chatstore import ChatRecords, FSSnapshotPersistence, KeyValueStore

async def go():
    with tempfile.TemporaryDirectory() as d:
        async with KeyValueStore(FSSnapshotPersistence(d)) as store:
            await ChatRecords(store).insert_chat({"id": "c1", "userId": "u1"})
        async with KeyValueStore(FSSnapshotPersistence(d)) as store:
            assert [c["id"] for c in await ChatRecords(store).get_chats_by_user_id("u1")] == ["c1"]
            print(json.dumps((await store.stats()).to_dict()))

print("chatstore", chatstore.__version__, "from", chatstore.__file__)
asyncio.run(go())
"""
    run([str(venv_python), "-c", code])


def main():
    print(f"[info] Project root: {ROOT}")
    build_python_package()
    venv_python = create_fresh_venv()
    install_wheel_in_venv(venv_python)
    smoke_test_store(venv_python)
    print("\nSmoke test completed successfully.")


if __name__ == "__main__":
    main()
