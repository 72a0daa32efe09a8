"""
Engineering audit: enforce the request store boundary.
Scans code and fails if payment request rows are written outside
apps/payments/store.py.

Run from the repository root: python backend/scripts/enforce_service_layer.py
"""

import ast
import sys
from pathlib import Path

GUARDED_MODELS = {"PaymentRequest", "RequestApprover", "ApprovalRecord"}
WRITE_METHODS = {
    "create",
    "bulk_create",
    "update",
    "bulk_update",
    "update_or_create",
    "get_or_create",
    "delete",
}

ALLOWED_PATHS = ("apps/payments/store.py",)
SKIPPED_DIRS = ("migrations", "tests", "__pycache__", ".venv")


def _root_name(node):
    """Name at the start of a call/attribute chain, e.g. PaymentRequest."""
    while True:
        if isinstance(node, ast.Call):
            node = node.func
        elif isinstance(node, ast.Attribute):
            node = node.value
        elif isinstance(node, ast.Name):
            return node.id
        else:
            return None


def scan_source(source, filename="<string>"):
    """Return (lineno, message) for every guarded write in source."""
    tree = ast.parse(source, filename=filename)
    issues = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
            continue
        if node.func.attr not in WRITE_METHODS:
            continue
        model = _root_name(node.func.value)
        if model in GUARDED_MODELS:
            issues.append((node.lineno, f"{model} ... .{node.func.attr}()"))
    return issues


def scan_file(filepath):
    """Scan Python file for guarded writes."""
    posix = filepath.as_posix()
    if any(posix.endswith(allowed) for allowed in ALLOWED_PATHS):
        return []

    try:
        found = scan_source(filepath.read_text(), filename=str(filepath))
    except SyntaxError as exc:
        return [f"{filepath}: cannot parse ({exc.msg})"]
    return [f"{filepath}:{lineno}: {message}" for lineno, message in found]


def scan_tree(root):
    all_issues = []
    for pyfile in sorted(Path(root).rglob("*.py")):
        if any(part in SKIPPED_DIRS for part in pyfile.parts):
            continue
        all_issues.extend(scan_file(pyfile))
    return all_issues


def main():
    apps_dir = Path(__file__).resolve().parent.parent / "apps"
    all_issues = scan_tree(apps_dir)

    if all_issues:
        print("ERROR: Payment request writes detected outside apps/payments/store.py:")
        for issue in all_issues:
            print(f"  {issue}")
        sys.exit(1)

    print("OK: No payment request writes outside the request store")


if __name__ == "__main__":
    main()
