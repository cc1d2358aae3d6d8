"""Example: brute-force burst against one account."""

from datetime import datetime, timedelta, timezone

from shieldwatch.common.config.settings import Config
from shieldwatch.common.logging import get_logger
from shieldwatch.core.types import LoginOutcome
from shieldwatch.data.schemas.login_event import LoginEvent
from shieldwatch.orchestration.pipeline import create_pipeline
from shieldwatch.response.collaborators import InMemoryAuthService, InMemoryBlockList

logger = get_logger(__name__)


def example_brute_force_scenario():
    """
    Example scenario: credential stuffing against one account.

    1. Twelve failed logins from one address within a minute
    2. The fifth failure raises a failed-attempts alert and a short block
    3. The tenth raises a brute-force alert and a one-hour block
    4. Everything else is throttled into the existing alerts
    """
    block_list = InMemoryBlockList()
    pipeline = create_pipeline(
        config=Config(), block_list=block_list, auth=InMemoryAuthService()
    )
    start = datetime.now(timezone.utc)

    try:
        for i in range(12):
            result = pipeline.ingest(LoginEvent(
                subject="victim@example.com",
                source_address="198.51.100.23",
                user_agent="python-requests/2.31",
                timestamp=start + timedelta(seconds=5 * i),
                outcome=LoginOutcome.FAILURE,
            ))
            for alert in result.alerts:
                logger.info(f"Attempt {i + 1}: {alert.severity.value} {alert.explanation}")
            if result.suppressed:
                logger.info(f"Attempt {i + 1}: {len(result.suppressed)} detections throttled")

        return pipeline.subject_report("victim@example.com"), block_list
    finally:
        pipeline.close()


if __name__ == "__main__":
    report, block_list = example_brute_force_scenario()
    print(f"Risk level: {report['risk_level']}")
    print(f"Blocked addresses: {block_list.blocked_addresses()}")
