"""Example usage script for the TruthStack pipeline."""

import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run a sample analysis."""

    # Check for API key
    if not os.getenv("LLM_API_KEY"):
        print("Error: LLM_API_KEY not set in environment")
        print("Please create a .env file with your API key")
        return

    # Import after environment is loaded
    from truthstack.exceptions import AllModelsFailedError
    from truthstack.graph import create_graph

    claim = "Drinking 8 glasses of water a day is essential for everyone."

    print("=" * 60)
    print("TruthStack - Layered Claim Analysis")
    print("=" * 60)
    print(f"\nClaim: {claim}\n")
    print("-" * 60)
    print("Analyzing...\n")

    graph = create_graph()

    try:
        result = graph.run(claim)
    except AllModelsFailedError as e:
        print(f"\nAnalysis failed: {e}")
        for attempt in e.attempts:
            print(f"  {attempt.model}: {attempt.error}")
        return
    finally:
        if graph.usage_emitter is not None:
            graph.usage_emitter.shutdown(wait=True)

    for layer in result.layers:
        print(f"\n[{layer.title}]")
        print(layer.content)
        if layer.bias_data:
            bias = layer.bias_data
            print(
                f"  Bias: political {bias.political_score}, "
                f"scientific deviation {bias.scientific_deviation}, "
                f"emotional {bias.emotional_charge}, "
                f"commercial {bias.commercial_interest}"
            )

    print("\n" + "-" * 60)
    print(f"Confidence: {result.confidence_score:.0%}")
    print(f"Category: {result.category}")
    print(f"Model: {result.model_used}")

    if result.sources:
        print("Sources:")
        for i, source in enumerate(result.sources, 1):
            print(f"  {i}. {source.title} {source.uri}".rstrip())

    if result.suggested_questions:
        print("Follow-up questions:")
        for question in result.suggested_questions:
            print(f"  - {question}")

    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
