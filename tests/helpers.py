"""Builders and fakes shared by the test modules."""

from pathlib import Path

from ormlens.detectors.base import ArgumentFinding, Detector, Finding, OperationFinding
from ormlens.model import OperationType, Selection


def sel(path: str = "app/models.py", line: int = 1) -> Selection:
    return Selection(path, line, 0, line, 10)


def declaration(name: str, path: str = "app/models.py", line: int = 1) -> Finding:
    return Finding(name, None, sel(path, line))


def operation_finding(
    entity: str,
    name: str = "query.all",
    op_type: OperationType = OperationType.READ,
    arguments: tuple = (),
    path: str = "app/views.py",
    line: int = 1,
) -> Finding:
    op = OperationFinding(
        name=name,
        type=op_type,
        arguments=tuple(ArgumentFinding(a, sel(path, line)) for a in arguments),
        selection=sel(path, line),
    )
    return Finding(entity, op, sel(path, line))


class FakeDetector(Detector):
    """Detector returning canned findings per file id.

    Files listed in ``failing`` raise RuntimeError, which aborts a run.
    """

    name = "fake"

    def __init__(self, root: Path, findings: dict, failing: tuple = ()):
        super().__init__(root)
        self.findings = findings
        self.failing = set(failing)
        self.calls: list[list[str]] = []
        self.closed = False

    def detect(self, files):
        files = list(files)
        self.calls.append(files)
        return super().detect(files)

    def detect_file(self, file_id):
        if file_id in self.failing:
            raise RuntimeError(f"detector crashed on {file_id}")
        return list(self.findings.get(file_id, []))

    def close(self):
        self.closed = True


def write_files(root: Path, files: dict) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
