"""Tests for the batched analyzer engine."""

import threading

import pytest
from helpers import FakeDetector, declaration, operation_finding, write_files

from ormlens.cache import CachingDetector
from ormlens.config import AnalysisConfig
from ormlens.detectors import SqlAlchemyDetector
from ormlens.engine import (
    AnalysisOutcome,
    BatchedAnalyzer,
    CancellationToken,
    create_analyzer,
)
from ormlens.exceptions import ParsingError, UserInputError
from ormlens.model import OperationType, Partition, Repository
from ormlens.result import AnalyzeResult

R = Partition.RECOGNIZED
U = Partition.UNKNOWN


@pytest.fixture(autouse=True)
def fixed_repository(monkeypatch):
    repository = Repository(url="git@example.com:shop.git", commit_hash="abc123")
    monkeypatch.setattr("ormlens.engine.batched.detect_repository", lambda root: repository)
    return repository


@pytest.fixture
def workspace(tmp_path):
    write_files(tmp_path, {"a.py": "", "b.py": "", "c.py": ""})
    return tmp_path


def make_analyzer(root, findings, batch_size=1, result=None, failing=()):
    config = AnalysisConfig(batch_size=batch_size, cache_enabled=False)
    detector = FakeDetector(root, findings, failing)
    return BatchedAnalyzer(result or AnalyzeResult(), root, config, detector, name="fake")


class BlockingDetector(FakeDetector):
    """Holds the first detect_file call until released."""

    def __init__(self, root, findings):
        super().__init__(root, findings)
        self.started = threading.Event()
        self.release = threading.Event()

    def detect_file(self, file_id):
        self.started.set()
        assert self.release.wait(5)
        return super().detect_file(file_id)


# ---------------------------------------------------------------------------
# Fresh runs
# ---------------------------------------------------------------------------


class TestFreshRun:
    def test_merges_and_finalizes(self, workspace, fixed_repository):
        analyzer = make_analyzer(
            workspace,
            {
                "a.py": [declaration("User", "a.py")],
                "b.py": [operation_finding("User", path="b.py"), operation_finding("Ghost")],
            },
        )
        messages = []

        assert analyzer.analyze(messages.append) is True
        assert analyzer.outcome is AnalysisOutcome.COMPLETED

        result = analyzer.result
        assert [o.name for o in result.get_group(R)["User"].operations] == ["query.all"]
        assert list(result.get_group(U)) == ["Ghost"]
        assert result.analyzed_files == frozenset({"a.py", "b.py", "c.py"})
        assert result.get_repository() == fixed_repository
        assert analyzer.pending_count == 0

        assert messages == ["[1/3] a.py", "[2/3] b.py", "[3/3] c.py", "Analyzed 3 files"]
        assert analyzer.snapshot_path == workspace / ".ormlens" / "fake-result.json"
        assert analyzer.snapshot_path.exists()

    def test_later_declaration_claims_pending_operations(self, workspace):
        analyzer = make_analyzer(
            workspace,
            {
                "a.py": [operation_finding("Order", "add", OperationType.WRITE)],
                "c.py": [declaration("Order", "c.py", 4)],
            },
        )
        analyzer.analyze(lambda message: None)

        order = analyzer.result.get_group(R)["Order"]
        assert [o.name for o in order.operations] == ["add"]
        assert order.selection.file_path == "c.py"
        assert analyzer.result.get_group(U) == {}

    def test_operation_before_declaration_in_same_batch(self, workspace):
        analyzer = make_analyzer(
            workspace,
            {
                "a.py": [operation_finding("Order")],
                "b.py": [declaration("Order", "b.py")],
            },
            batch_size=10,
        )
        analyzer.analyze(lambda message: None)
        assert len(analyzer.result.get_group(R)["Order"].operations) == 1

    def test_duplicate_findings_collapse(self, workspace):
        finding = operation_finding("User", path="a.py", line=3)
        analyzer = make_analyzer(
            workspace, {"a.py": [declaration("User"), finding, finding], "b.py": [finding]}
        )
        analyzer.analyze(lambda message: None)
        assert len(analyzer.result.get_group(R)["User"].operations) == 1

    def test_same_name_at_different_anchors_is_kept(self, workspace):
        analyzer = make_analyzer(
            workspace,
            {
                "a.py": [
                    declaration("User"),
                    operation_finding("User", line=3),
                    operation_finding("User", line=9),
                ]
            },
        )
        analyzer.analyze(lambda message: None)
        assert len(analyzer.result.get_group(R)["User"].operations) == 2

    def test_arguments_are_converted(self, workspace):
        analyzer = make_analyzer(
            workspace,
            {"a.py": [declaration("User"), operation_finding("User", arguments=("name", "age"))]},
        )
        analyzer.analyze(lambda message: None)
        operation = analyzer.result.get_group(R)["User"].operations[0]
        assert [a.name for a in operation.arguments] == ["name", "age"]
        assert not any(a.is_custom for a in operation.arguments)

    def test_already_analyzed_files_are_not_scanned(self, workspace):
        result = AnalyzeResult()
        result.add_analyzed_files(["b.py"])
        analyzer = make_analyzer(workspace, {}, batch_size=10, result=result)
        analyzer.analyze(lambda message: None)
        assert analyzer.detector.calls == [["a.py", "c.py"]]

    def test_empty_workspace(self, tmp_path):
        analyzer = make_analyzer(tmp_path, {})
        messages = []
        assert analyzer.analyze(messages.append) is True
        assert messages == ["Analyzed 0 files"]
        assert analyzer.snapshot_path.exists()

    def test_source_root(self, tmp_path):
        write_files(tmp_path, {"app/models.py": "", "scripts/seed.py": ""})
        config = AnalysisConfig(source_root="app", cache_enabled=False)
        detector = FakeDetector(tmp_path, {})
        analyzer = BatchedAnalyzer(AnalyzeResult(), tmp_path, config, detector)
        analyzer.analyze(lambda message: None)
        assert analyzer.result.analyzed_files == frozenset({"app/models.py"})


# ---------------------------------------------------------------------------
# Resume, failure, cancellation
# ---------------------------------------------------------------------------


class TestResume:
    def test_loads_snapshot_without_scanning(self, workspace):
        first = make_analyzer(workspace, {"a.py": [declaration("User")]})
        first.analyze(lambda message: None)

        second = make_analyzer(workspace, {})
        messages = []
        assert second.analyze(messages.append) is True
        assert second.outcome is AnalysisOutcome.RESUMED
        assert second.detector.calls == []
        assert "User" in second.result.get_group(R)
        assert messages[0].startswith("Loaded fake analysis from")

    def test_corrupt_snapshot_triggers_scan(self, workspace):
        analyzer = make_analyzer(workspace, {"a.py": [declaration("User")]})
        analyzer.snapshot_path.parent.mkdir()
        analyzer.snapshot_path.write_text("{broken")

        analyzer.analyze(lambda message: None)
        assert analyzer.outcome is AnalysisOutcome.COMPLETED
        assert "User" in analyzer.result.get_group(R)


class TestFailure:
    def test_detector_crash_fails_run(self, workspace):
        analyzer = make_analyzer(workspace, {"a.py": [declaration("User")]}, failing=("b.py",))
        messages = []

        assert analyzer.analyze(messages.append) is False
        assert analyzer.outcome is AnalysisOutcome.FAILED
        assert messages[-1].startswith("Analysis failed: detector crashed on b.py")
        assert not analyzer.snapshot_path.exists()

    def test_parse_errors_skip_the_file(self, workspace):
        class PickyDetector(FakeDetector):
            def detect_file(self, file_id):
                if file_id == "b.py":
                    raise ParsingError(workspace / file_id, "invalid syntax")
                return super().detect_file(file_id)

        detector = PickyDetector(workspace, {"c.py": [declaration("User")]})
        analyzer = BatchedAnalyzer(
            AnalyzeResult(), workspace, AnalysisConfig(cache_enabled=False), detector
        )
        assert analyzer.analyze(lambda message: None) is True
        assert "User" in analyzer.result.get_group(R)
        assert analyzer.result.file_analyzed("b.py")

    def test_can_run_again_after_failure(self, workspace):
        analyzer = make_analyzer(workspace, {}, failing=("a.py",))
        assert analyzer.analyze(lambda message: None) is False
        analyzer.detector.failing.clear()
        assert analyzer.analyze(lambda message: None) is True

    def test_retry_keeps_pending_operations_of_scanned_files(self, workspace):
        analyzer = make_analyzer(
            workspace,
            {"a.py": [operation_finding("User")], "c.py": [declaration("User")]},
            failing=("b.py",),
        )
        assert analyzer.analyze(lambda message: None) is False
        assert analyzer.result.analyzed_files == frozenset({"a.py"})

        analyzer.detector.failing.clear()
        assert analyzer.analyze(lambda message: None) is True
        assert analyzer.outcome is AnalysisOutcome.COMPLETED
        assert analyzer.detector.calls[-2:] == [["b.py"], ["c.py"]]
        assert len(analyzer.result.get_group(R)["User"].operations) == 1
        assert analyzer.result.get_group(U) == {}

    def test_cleared_model_drops_pending_operations(self, workspace):
        analyzer = make_analyzer(
            workspace, {"a.py": [operation_finding("User")]}, failing=("b.py",)
        )
        assert analyzer.analyze(lambda message: None) is False
        analyzer.result.clear()

        analyzer.detector.failing.clear()
        analyzer.detector.findings = {}
        assert analyzer.analyze(lambda message: None) is True
        assert analyzer.result.get_group(U) == {}


def counts(result):
    return {p: (result.entity_count(p), result.operation_count(p)) for p, _ in result.groups()}


class TestCancellation:
    def test_cancelled_state_matches_run_at_same_boundary(self, workspace, tmp_path_factory):
        findings = {
            "a.py": [declaration("User"), operation_finding("User")],
            "b.py": [operation_finding("Order"), operation_finding("User", line=7)],
            "c.py": [declaration("Order"), operation_finding("User", line=9)],
        }

        full = make_analyzer(workspace, findings)
        at_boundary = {}

        def record(message):
            if message.startswith("[2/3]"):
                at_boundary.update(counts(full.result))

        assert full.analyze(record) is True
        assert full.outcome is AnalysisOutcome.COMPLETED

        other_root = tmp_path_factory.mktemp("copy")
        write_files(other_root, {"a.py": "", "b.py": "", "c.py": ""})
        token = CancellationToken()
        cancelled = make_analyzer(other_root, findings)

        def cancel_at_boundary(message):
            if message.startswith("[2/3]"):
                token.cancel()

        assert cancelled.analyze(cancel_at_boundary, token) is True
        assert cancelled.outcome is AnalysisOutcome.CANCELLED
        assert counts(cancelled.result) == at_boundary
        assert counts(cancelled.result) != counts(full.result)

    def test_stops_after_current_batch(self, workspace):
        token = CancellationToken()
        token.cancel()
        analyzer = make_analyzer(
            workspace,
            {"a.py": [operation_finding("Ghost")], "b.py": [declaration("User")]},
        )
        messages = []

        assert analyzer.analyze(messages.append, token) is True
        assert analyzer.outcome is AnalysisOutcome.CANCELLED
        assert analyzer.result.analyzed_files == frozenset({"a.py"})
        assert messages[-1] == "Analysis cancelled after 1 of 3 files"

        # cancelled runs are saved but not finalized
        assert analyzer.result.get_group(U) == {}
        assert analyzer.pending_count == 1
        assert analyzer.snapshot_path.exists()

    def test_cancel_from_another_thread(self, workspace):
        config = AnalysisConfig(batch_size=1, cache_enabled=False)
        detector = BlockingDetector(workspace, {})
        analyzer = BatchedAnalyzer(AnalyzeResult(), workspace, config, detector)
        returned = []

        worker = threading.Thread(target=lambda: returned.append(analyzer.analyze(print)))
        worker.start()
        assert detector.started.wait(5)
        analyzer.cancel()
        detector.release.set()
        worker.join(5)

        assert returned == [True]
        assert analyzer.outcome is AnalysisOutcome.CANCELLED
        assert detector.calls == [["a.py"]]

    def test_cancel_without_run_is_harmless(self, workspace):
        analyzer = make_analyzer(workspace, {})
        analyzer.cancel()
        assert analyzer.analyze(lambda message: None) is True
        assert analyzer.outcome is AnalysisOutcome.COMPLETED


class TestConcurrency:
    def test_second_run_is_rejected(self, workspace):
        config = AnalysisConfig(batch_size=10, cache_enabled=False)
        detector = BlockingDetector(workspace, {})
        analyzer = BatchedAnalyzer(AnalyzeResult(), workspace, config, detector)

        worker = threading.Thread(target=analyzer.analyze, args=(lambda message: None,))
        worker.start()
        assert detector.started.wait(5)

        messages = []
        assert analyzer.analyze(messages.append) is False
        assert messages == ["fake analysis is already running"]

        detector.release.set()
        worker.join(5)
        assert analyzer.outcome is AnalysisOutcome.COMPLETED


# ---------------------------------------------------------------------------
# Merge and finalize
# ---------------------------------------------------------------------------


class TestMergeFinalize:
    def test_finalize_is_idempotent(self, tmp_path):
        analyzer = make_analyzer(tmp_path, {})
        analyzer.merge([operation_finding("Ghost")])
        assert analyzer.pending_count == 1

        analyzer.finalize()
        analyzer.finalize()
        assert len(analyzer.result.get_group(U)["Ghost"].operations) == 1
        assert analyzer.pending_count == 0

    def test_finalize_attaches_to_existing_unknown_entity(self, tmp_path, populated_result):
        analyzer = make_analyzer(tmp_path, {}, result=populated_result)
        analyzer.merge([operation_finding("Legacy", "objects.first")])
        analyzer.finalize()
        names = [o.name for o in populated_result.get_group(U)["Legacy"].operations]
        assert names == ["objects.all", "objects.first"]

    def test_merge_keeps_curated_entity(self, tmp_path, populated_result):
        analyzer = make_analyzer(tmp_path, {}, result=populated_result)
        analyzer.merge([declaration("Draft"), operation_finding("Draft", "save")])
        draft = populated_result.get_group(R)["Draft"]
        assert draft.is_custom
        assert [o.name for o in draft.operations] == ["save"]


# ---------------------------------------------------------------------------
# Auto-annotation
# ---------------------------------------------------------------------------


class TestAutoAnnotate:
    def test_full_scan(self, tmp_path, populated_result):
        analyzer = make_analyzer(tmp_path, {}, result=populated_result)
        assert analyzer.auto_annotate("full-scan") == 1
        user = populated_result.get_group(R)["User"]
        assert user.operations[2].note == "@audit(a1) !read, full-scan"
        # already tagged
        assert populated_result.get_group(U)["Legacy"].operations[0].note == "full-scan"

    def test_is_idempotent(self, tmp_path, populated_result):
        analyzer = make_analyzer(tmp_path, {}, result=populated_result)
        analyzer.auto_annotate("non-eq")
        assert analyzer.auto_annotate("non-eq") == 0
        assert populated_result.get_group(R)["User"].operations[0].note == "non-eq"

    def test_unsupported_tag(self, tmp_path, populated_result):
        analyzer = make_analyzer(tmp_path, {}, result=populated_result)
        with pytest.raises(UserInputError, match="Unsupported tag 'phantom'"):
            analyzer.auto_annotate("phantom")

    def test_supported_tags(self, tmp_path):
        analyzer = make_analyzer(tmp_path, {})
        assert analyzer.supported_auto_annotate_tags() == ("full-scan", "join", "non-eq")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateAnalyzer:
    def test_unknown_analyzer(self, tmp_path):
        with pytest.raises(UserInputError, match="Unknown analyzer 'peewee'"):
            create_analyzer("peewee", AnalyzeResult(), tmp_path, AnalysisConfig())

    def test_cached_detector(self, tmp_path):
        analyzer = create_analyzer("sqlalchemy", AnalyzeResult(), tmp_path, AnalysisConfig())
        try:
            assert isinstance(analyzer.detector, CachingDetector)
            assert isinstance(analyzer.detector.detector, SqlAlchemyDetector)
            assert analyzer.snapshot_path.name == "sqlalchemy-result.json"
        finally:
            analyzer.close()

    def test_uncached_detector(self, tmp_path):
        config = AnalysisConfig(cache_enabled=False, max_file_size_mb=1)
        analyzer = create_analyzer("django", AnalyzeResult(), tmp_path, config)
        assert analyzer.detector.name == "django"
        assert analyzer.detector.max_file_size == 1024 * 1024
        assert analyzer.get_name() == "django"
