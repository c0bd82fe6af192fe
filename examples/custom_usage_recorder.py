"""Example of using TruthStack with a custom usage recorder."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from truthstack.graph import TruthStackGraph
from truthstack.models.schemas import UsageRecord
from truthstack.services.usage import UsageRecorder


class PrintingUsageRecorder(UsageRecorder):
    """
    Example custom usage sink.

    Swap in a recorder that writes to your own analytics store; the
    pipeline only ever calls `record`, on a background worker.
    """

    def record(self, record: UsageRecord) -> None:
        print(
            f"[usage] {record.timestamp:%H:%M:%S} {record.verdict} "
            f"category={record.category} sources={record.source_count} "
            f"image={record.has_image} model={record.model}"
        )


def main():
    """Demonstrate custom usage recorder."""

    print("=" * 60)
    print("TruthStack - Custom Usage Recorder Example")
    print("=" * 60)

    graph = TruthStackGraph(usage_recorder=PrintingUsageRecorder())

    claim = "The Great Wall of China is visible from space with the naked eye."
    print(f"\nClaim: {claim}\n")

    result = graph.run(claim)
    graph.usage_emitter.shutdown(wait=True)

    print(f"\nVerdict: {result.verdict.status.value} ({result.confidence_score:.0%})")


if __name__ == "__main__":
    main()
