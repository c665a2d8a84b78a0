import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from signoff.main import build_parser, main
from signoff.reconciliation.exceptions import ValidationError
from signoff.reconciliation.models import (
    ConfidenceLabel,
    Outcome,
    PipelineOutcome,
    SourceTag,
)
from tests.factories import make_extraction


def _outcome() -> PipelineOutcome:
    return PipelineOutcome(
        identifier="4521983",
        confidence=0.98,
        confidence_label=ConfidenceLabel.HIGH,
        outcome=Outcome.APPLIED,
        reason_code=None,
        message=None,
        extraction=make_extraction(),
        document_ref="signed/abc.pdf",
    )


class TestParser:
    def test_process_defaults(self) -> None:
        args = build_parser().parse_args(["process", "doc.pdf", "--sender", "acme"])
        assert args.page == 1
        assert args.source == "upload"
        assert args.identifier is None

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


@patch("signoff.main.close_pool")
@patch("signoff.main.init_pool")
class TestMain:
    @patch("signoff.main.build_processor")
    def test_process_prints_outcome(
        self,
        mock_build: MagicMock,
        mock_init: MagicMock,
        mock_close: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        pdf = tmp_path / "signed.pdf"
        pdf.write_bytes(b"%PDF-1.4")
        mock_build.return_value.process.return_value = _outcome()

        code = main(["process", str(pdf), "--sender", "acme", "--source", "mailbox_import", "--message-id", "<m1>"])

        assert code == 0
        pipeline_input = mock_build.return_value.process.call_args.args[0]
        assert pipeline_input.document_bytes == b"%PDF-1.4"
        assert pipeline_input.filename == "signed.pdf"
        assert pipeline_input.source_tag is SourceTag.MAILBOX_IMPORT
        assert pipeline_input.source_metadata.message_id == "<m1>"
        printed = json.loads(capsys.readouterr().out)
        assert printed["outcome"] == "applied"
        mock_init.assert_called_once()
        mock_close.assert_called_once()

    @patch("signoff.main.build_review_queue")
    def test_resolve_rejected_returns_2(
        self,
        mock_build: MagicMock,
        mock_init: MagicMock,
        mock_close: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_build.return_value.resolve.side_effect = ValidationError("Manual identifier must not be blank")

        code = main(["resolve", "51", "--sender", "acme", "--identifier", " "])

        assert code == 2
        assert "must not be blank" in capsys.readouterr().err
        mock_close.assert_called_once()

    @patch("signoff.main.build_review_queue")
    def test_list_review(
        self,
        mock_build: MagicMock,
        mock_init: MagicMock,
        mock_close: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_build.return_value.list_unresolved.return_value = []

        code = main(["list-review", "--sender", "acme", "--limit", "5"])

        assert code == 0
        assert json.loads(capsys.readouterr().out) == []
        mock_build.return_value.list_unresolved.assert_called_once_with("acme", limit=5, offset=0)
