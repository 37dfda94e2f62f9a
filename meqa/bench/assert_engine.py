from typing import Optional, Tuple

from meqa.bench.types import Expectation


class AssertEngine:
    def check(self, expect: Expectation, status_code: Optional[int]) -> Tuple[bool, Optional[str]]:
        """Compare a response status against a step's expectation."""
        if status_code is None:
            return False, "no response"

        wanted = expect.status
        if wanted == "success":
            ok = 200 <= status_code < 300
        elif wanted == "fail":
            ok = status_code >= 400
        else:
            ok = status_code == int(wanted)

        if ok:
            return True, None
        return False, f"expected status {wanted}, got {status_code}"
