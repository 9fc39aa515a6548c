import tempfile
import unittest
from pathlib import Path

from ccboard.parsers.tasks import DocumentFormatError, parse_tasks_document, parse_tasks_file

FIXTURES = Path(__file__).parent / "fixtures"


class TaskDocumentParserTests(unittest.TestCase):
    def setUp(self) -> None:
        self.text = (FIXTURES / "sample_tasks.md").read_text(encoding="utf-8")

    def test_sample_document_phases_and_totals(self) -> None:
        doc = parse_tasks_document(self.text)

        self.assertEqual(doc.title, "Sample Orchestration Run")
        self.assertEqual([phase.id for phase in doc.phases], ["Phase 0", "Phase 1", "Phase 2"])
        self.assertEqual([phase.name for phase in doc.phases], ["Project Setup", "Core Features", "Hardening"])
        self.assertEqual([len(phase.tasks) for phase in doc.phases], [2, 3, 3])
        self.assertEqual(doc.total_tasks, 8)
        self.assertEqual(doc.count_status("completed"), 1)
        self.assertEqual(doc.count_status("failed"), 1)
        self.assertEqual(doc.count_status("blocked"), 1)
        self.assertEqual(doc.count_status("in_progress"), 2)

    def test_task_fields(self) -> None:
        doc = parse_tasks_document(self.text)
        first = doc.phases[0].tasks[0]
        self.assertEqual(first.id, "P0-T1")
        self.assertEqual(first.name, "Initialize repository")
        self.assertEqual(first.status, "completed")
        self.assertEqual(first.agent, "devops-specialist")

        unassigned = doc.phases[2].tasks[0]
        self.assertEqual(unassigned.id, "P2-T1")
        self.assertEqual(unassigned.status, "blocked")
        self.assertIsNone(unassigned.agent)

    def test_phase_progress_is_derived(self) -> None:
        doc = parse_tasks_document(self.text)
        self.assertAlmostEqual(doc.phases[0].progress, 0.5)
        self.assertEqual(doc.phases[1].progress, 0.0)

    def test_empty_phase_has_zero_progress(self) -> None:
        doc = parse_tasks_document("## Phase 1: Empty\n\nnothing yet\n")
        self.assertEqual(len(doc.phases), 1)
        self.assertEqual(doc.phases[0].tasks, [])
        self.assertEqual(doc.phases[0].progress, 0.0)

    def test_status_tokens_are_case_sensitive(self) -> None:
        doc = parse_tasks_document(
            "## Phase 1\n"
            "- [X] A: upper-case x is not a status\n"
            "- [inprogress] B: wrong case\n"
            "- [x] C: done\n"
        )
        self.assertEqual([task.id for task in doc.phases[0].tasks], ["C"])
        self.assertEqual(doc.phases[0].name, "Phase 1")

    def test_task_without_id_gets_positional_id(self) -> None:
        doc = parse_tasks_document("## Phase 3 - Docs\n- [ ] Write the guide\n- [x] Publish @writer\n")
        tasks = doc.phases[0].tasks
        self.assertEqual(doc.phases[0].name, "Docs")
        self.assertEqual([(t.id, t.name, t.agent) for t in tasks], [
            ("T1", "Write the guide", None),
            ("T2", "Publish", "writer"),
        ])

    def test_duplicate_ids_within_phase_keep_first(self) -> None:
        doc = parse_tasks_document(
            "## Phase 1\n- [x] T-1: first\n- [ ] T-1: again\n"
            "## Phase 2\n- [ ] T-1: other phase is fine\n"
        )
        self.assertEqual([t.name for t in doc.phases[0].tasks], ["first"])
        self.assertEqual(len(doc.phases[1].tasks), 1)

    def test_tasks_before_first_phase_are_ignored(self) -> None:
        doc = parse_tasks_document("- [x] X-1: orphan\n\n## Phase 1\n- [ ] A-1: kept\n")
        self.assertEqual(doc.total_tasks, 1)
        self.assertEqual(doc.phases[0].tasks[0].id, "A-1")

    def test_no_phase_raises_format_error(self) -> None:
        with self.assertRaises(DocumentFormatError):
            parse_tasks_document("# Just a title\n\n- [x] A-1: no phase\n")
        with self.assertRaises(DocumentFormatError):
            parse_tasks_document("")

    def test_invalid_frontmatter_is_ignored(self) -> None:
        doc = parse_tasks_document("---\n: [unbalanced\n---\n## Phase 1\n- [ ] A: a\n")
        self.assertEqual(doc.title, "")
        self.assertEqual(doc.total_tasks, 1)

    def test_parse_tasks_file_missing_raises_oserror(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(OSError):
                parse_tasks_file(Path(tmpdir) / "TASKS.md")

    def test_parse_tasks_file_reads_utf8(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "TASKS.md"
            path.write_text("## Phase 1: Überblick\n- [x] A-1: Café menu ✓\n", encoding="utf-8")
            doc = parse_tasks_file(path)
        self.assertEqual(doc.phases[0].name, "Überblick")
        self.assertEqual(doc.phases[0].tasks[0].name, "Café menu ✓")

    def test_only_newline_ends_a_line(self) -> None:
        text = (
            "## Phase 1: Core\r\n"
            "- [ ] A-1: first\u2028second @dev\r\n"
            "- [x] A-2: page\x0cbreak\n"
            "- [Failed] A-3: next\x85line\n"
        )
        doc = parse_tasks_document(text)
        tasks = doc.phases[0].tasks
        self.assertEqual(doc.phases[0].name, "Core")
        self.assertEqual([t.id for t in tasks], ["A-1", "A-2", "A-3"])
        self.assertEqual(tasks[0].name, "first\u2028second")
        self.assertEqual(tasks[0].agent, "dev")
        self.assertEqual(tasks[1].name, "page\x0cbreak")
        self.assertEqual(tasks[2].status, "failed")

    def test_parse_tasks_file_replaces_invalid_utf8(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "TASKS.md"
            path.write_bytes(b"## Phase 1\n- [x] A: caf\xe9\n")
            doc = parse_tasks_file(path)
        self.assertEqual(doc.phases[0].tasks[0].name, "caf\ufffd")
        self.assertEqual(doc.phases[0].tasks[0].status, "completed")


if __name__ == "__main__":
    unittest.main()
