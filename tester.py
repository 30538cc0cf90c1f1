#!/usr/bin/env python3
import argparse
import glob
import subprocess
import sys
from pathlib import Path

# Exit codes of apispec_check.py
ACCEPTED = 0
REJECTED = 2


def expected_rc(testfile: str) -> int:
    return REJECTED if "invalid" in Path(testfile).name else ACCEPTED


def run_one(script: Path, testfile: str) -> int:
    tf = str(Path(testfile).resolve())
    print(f"==> {testfile}")
    p = subprocess.run([sys.executable, str(script), tf], cwd=str(script.parent))
    return p.returncode


def collect_spec_files(paths: list[str]) -> list[str]:
    """Expand files, directories and globs into a de-duplicated list of .spec files."""
    files: list[str] = []
    for p in paths:
        expanded = glob.glob(p)
        if expanded:
            for e in expanded:
                pe = Path(e)
                if pe.is_dir():
                    files.extend(sorted(str(x) for x in pe.rglob("*.spec")))
                else:
                    files.append(str(pe))
            continue

        pp = Path(p)
        if pp.is_dir():
            files.extend(sorted(str(x) for x in pp.rglob("*.spec")))
        elif pp.exists():
            files.append(str(pp))

    seen = set()
    return [f for f in files if not (f in seen or seen.add(f))]


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        description="Run apispec_check.py over multiple .spec files and compare verdicts."
    )
    ap.add_argument(
        "paths",
        nargs="+",
        help="Files/dirs/globs of .spec files (e.g., examples/*.spec specs/ foo.spec).",
    )
    ap.add_argument(
        "--script",
        default="src/apispec_check.py",
        help="Path to apispec_check.py (default: src/apispec_check.py).",
    )
    ap.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop at the first file whose verdict does not match its name.",
    )
    args = ap.parse_args(argv)

    script = Path(args.script).resolve()
    if not script.exists():
        print(f"error: script not found: {script}", file=sys.stderr)
        return 2

    files = collect_spec_files(args.paths)
    if not files:
        print("error: no .spec files found", file=sys.stderr)
        return 2

    failures = 0
    invalid = [f for f in files if expected_rc(f) == REJECTED]
    valid = [f for f in files if expected_rc(f) == ACCEPTED]
    for f in invalid + valid:
        rc = run_one(script, f)
        if rc != expected_rc(f):
            failures += 1
            print(f"MISMATCH: {f} exited {rc}, expected {expected_rc(f)}")
            if args.fail_fast:
                return 1

    print(f"{len(files) - failures}/{len(files)} matched")
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
