#!/usr/bin/env python3
"""
Build standalone cidralloc executable
Usage: python3 build.py [--version VERSION]

Environment Variables:
  VERSION: Version string (e.g., 1.0.2)
"""

import os
import sys

import PyInstaller.__main__

# Determine the source script
SCRIPT = "cidralloc.py"
NAME = "cidralloc"

# Get version from argument or environment
VERSION = os.environ.get("VERSION")
if len(sys.argv) > 1 and sys.argv[1] == "--version":
    if len(sys.argv) > 2:
        VERSION = sys.argv[2]
    else:
        print("❌ Error: --version requires a version string")
        sys.exit(1)
elif len(sys.argv) > 1:
    print(f"❌ Unknown argument: {sys.argv[1]}")
    print("Usage: python3 build.py [--version VERSION]")
    sys.exit(1)

# Check if source exists
if not os.path.exists(SCRIPT):
    print(f"❌ Error: {SCRIPT} not found!")
    sys.exit(1)

# Bundle a config if one is around; otherwise the binary writes its own default
extra_args = []
CONFIG_FILE = "config.yaml"
if not os.path.exists(CONFIG_FILE):
    xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    CONFIG_FILE = os.path.join(xdg_config, "cidralloc", "config.yaml")
if os.path.exists(CONFIG_FILE):
    extra_args.append(f"--add-data={CONFIG_FILE}:.")
else:
    print("⚠️  No config.yaml found, building without a bundled config")

# Determine output name
OUTPUT_NAME = NAME if VERSION is None else f"{NAME}-v{VERSION}"

print(f"🔨 Building standalone executable for {SCRIPT}...")
print(f"📦 Version: {VERSION if VERSION else 'latest'}")
print(f"📁 Output: dist/{OUTPUT_NAME}")

PyInstaller.__main__.run(
    [
        SCRIPT,
        "--onefile",  # Single EXE file
        "--name=" + OUTPUT_NAME,  # Output name
        *extra_args,
        "--hidden-import=address",
        "--hidden-import=allocator",
        "--hidden-import=models",
        "--hidden-import=render",
        "--hidden-import=sqlalchemy.dialects.sqlite",
        "--hidden-import=sqlalchemy.dialects.postgresql",
        "--hidden-import=rich",
        "--hidden-import=rich.console",
        "--hidden-import=rich.table",
        "--hidden-import=rich.panel",
        "--hidden-import=rich.text",
        "--hidden-import=rich.box",
        "--collect-all=sqlalchemy",
        "--collect-all=rich",
        "--clean",  # Clean cache
        "--noconfirm",  # Overwrite output dir
    ]
)

print(f"✅ Build complete! Executable: dist/{OUTPUT_NAME}")
