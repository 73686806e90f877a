"""
Pricing errors.

None of these are retried — they are deterministic functions of bad input.
Each carries enough context (field path, offending value) for the caller
to fix the input.
"""


class PricingError(Exception):
    """Base class for all pricing-core errors."""


class PricebookValidationError(PricingError):
    """
    A raw pricebook payload failed validation.

    issues: list of {"loc": "tables.materials.0.name", "msg": str, "input": value}
    A pricebook either loads fully validated or not at all.
    """

    def __init__(self, issues: list):
        self.issues = issues
        summary = "; ".join(f"{i['loc'] or '<root>'}: {i['msg']}" for i in issues[:5])
        if len(issues) > 5:
            summary += f" (+{len(issues) - 5} more)"
        super().__init__(f"Invalid pricebook ({len(issues)} issue(s)): {summary}")

    @classmethod
    def from_pydantic(cls, exc) -> "PricebookValidationError":
        """Flatten a pydantic ValidationError into loc/msg/input issues."""
        issues = []
        for err in exc.errors():
            issues.append({
                "loc": ".".join(str(part) for part in err.get("loc", ())),
                "msg": err.get("msg", "invalid"),
                "input": err.get("input"),
            })
        return cls(issues)


class EvaluationError(PricingError):
    """A single line item could not be priced. Does not affect other items."""

    def __init__(self, detail: str, rule_id=None):
        self.detail = detail
        self.rule_id = str(rule_id) if rule_id is not None else None
        prefix = f"rule {self.rule_id}: " if self.rule_id else ""
        super().__init__(f"{prefix}{detail}")


class PricebookReferenceError(PricingError):
    """A product or line item references an entity missing from the snapshot."""

    def __init__(self, kind: str, ref_id, path: str = ""):
        self.kind = kind
        self.ref_id = str(ref_id)
        self.path = path
        where = f" (referenced from {path})" if path else ""
        super().__init__(f"{kind} {self.ref_id} not found in pricebook{where}")


class ConcurrentUpdateError(PricingError):
    """Optimistic version check kept failing for a facts record."""

    def __init__(self, quote_id: str, attempts: int):
        self.quote_id = quote_id
        self.attempts = attempts
        super().__init__(
            f"Facts for quote {quote_id} changed underneath us "
            f"{attempts} time(s) — giving up"
        )
