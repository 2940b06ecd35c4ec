"""Tests for verification output parsing."""

from prdflow.lib.verify_parse import (
    FailureInfo,
    VerificationReport,
    format_report,
    parse_verification_output,
)

PYTEST_FAILURE = """\
============================= test session starts ==============================
collected 3 items

tests/test_reformat.py .F.                                               [100%]

=================================== FAILURES ===================================
_______________________________ test_timestamps ________________________________

    def test_timestamps():
>       assert reformat("x") == "y"
E       AssertionError: assert 'x' == 'y'

tests/test_reformat.py:12: AssertionError
=========================== short test summary info ============================
FAILED tests/test_reformat.py::test_timestamps
========================= 1 failed, 2 passed in 0.05s ==========================
"""

PYTEST_COLLECTION_ERROR = """\
==================================== ERRORS ====================================
___________________ ERROR collecting tests/test_reformat.py ____________________
ModuleNotFoundError: No module named 'logfmt'
=========================== 1 error in 0.10s ===========================
"""

JEST_FAILURE = """\
 FAIL  src/format.test.ts
  ● formatLine › pads level

    expect(received).toBe(expected)

      at Object.<anonymous> (src/format.test.ts:14:21)

Tests:       1 failed, 4 passed, 5 total
"""


class TestParsePytest:

    def test_failure_with_location_and_assertion(self):
        report = parse_verification_output("pytest", 1, PYTEST_FAILURE, "")
        assert not report.passed
        assert report.summary == "1 failed, 2 passed in 0.05s"
        [failure] = report.failures
        assert failure.name == "test_timestamps"
        assert failure.file == "tests/test_reformat.py"
        assert failure.line == 12
        assert failure.message == "assert 'x' == 'y'"

    def test_inline_message(self):
        out = "FAILED tests/t.py::TestX::test_a - ValueError: boom\n"
        [failure] = parse_verification_output("pytest", 1, out, "").failures
        assert failure.name == "TestX::test_a"
        assert failure.message == "ValueError: boom"

    def test_collection_error(self):
        report = parse_verification_output("pytest", 2, PYTEST_COLLECTION_ERROR, "")
        [failure] = report.failures
        assert failure.kind == "collection"
        assert failure.message == "Missing module: logfmt"


class TestParseJest:

    def test_failure(self):
        report = parse_verification_output("npm test", 1, JEST_FAILURE, "")
        [failure] = report.failures
        assert failure.name == "formatLine › pads level"
        assert failure.file == "src/format.test.ts"
        assert failure.line == 14
        assert failure.message == "expect(received).toBe(expected)"
        assert report.summary == "1 failed, 4 passed, 5 total"


class TestReport:

    def test_passed(self):
        report = parse_verification_output("pytest", 0, "==== 3 passed in 0.01s ====\n", "")
        assert report.passed
        assert report.summary == "3 passed in 0.01s"

    def test_unparsed_failure_keeps_raw_output(self):
        report = parse_verification_output("make check", 2, "", "lint: 3 problems")
        assert report.summary == "Verification failed (exit 2, unparsed output)"
        assert "lint: 3 problems" in format_report(report)

    def test_timeout(self):
        report = parse_verification_output("pytest", -1, "", "", timed_out=True)
        assert not report.passed
        assert report.summary == "Verification timed out"

    def test_raw_output_truncated_from_the_end(self):
        report = parse_verification_output("x", 1, "a" * 5000 + "TAIL", "")
        assert report.raw_output.startswith("...(truncated)")
        assert report.raw_output.endswith("TAIL")

    def test_dict_round_trip(self):
        report = parse_verification_output("pytest", 1, PYTEST_FAILURE, "")
        assert VerificationReport.from_dict(report.to_dict()) == report

    def test_format_lists_failures(self):
        report = VerificationReport(
            command="pytest", returncode=1, summary="12 failed",
            failures=[FailureInfo(name=f"test_{i}", file="t.py", line=i) for i in range(1, 13)],
        )
        text = format_report(report)
        assert text.splitlines()[0] == "12 failed (pytest)"
        assert "  - test_1 at t.py:1" in text
        assert "  - ... and 2 more" in text
