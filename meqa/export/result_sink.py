from pathlib import Path

import yaml


class ResultSink:
    def write_result(self, result_path, document: dict) -> None:
        """Replace whatever sits at result_path with the given document."""
        path = Path(result_path)
        path.unlink(missing_ok=True)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump(document, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
