"""Key-value store key layout for pipeline bookkeeping."""

BATCH_PREFIX = "klearstack_batch:"
EXTRACTED_PREFIX = "klearstack_extracted:"


def batch_key(submission_id: str) -> str:
    return f"{BATCH_PREFIX}{submission_id}"


def extracted_key(submission_id: str) -> str:
    return f"{EXTRACTED_PREFIX}{submission_id}"
