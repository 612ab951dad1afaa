import argparse
import sys
from pathlib import Path

# Add project root to path for robust execution
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from seqtag.beam_search import SequenceDecoder
from seqtag.config import load_config
from seqtag.errors import DecoderError
from seqtag.io_utils import load_steps, load_weights, save_outcomes
from seqtag.scorer import WeightedScorer


def main():
    """
    Command-line interface for the sequence decoder.

    This script wires the pieces together for a single input:
    1.  Loads the configuration file (`config.yaml`) and the weight table it
        points to.
    2.  Loads the per-position base features from the input JSON file.
    3.  Builds the `WeightedScorer` and the history feature extractors.
    4.  Runs the beam search decoder.
    5.  Writes the decoded outcomes (and, on request, the n-best list) to the
        output JSON file.
    """
    parser = argparse.ArgumentParser(
        description="Decode the best outcome sequence for a file of per-position features.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--input",
        required=True,
        help="Path to the input JSON file with a 'steps' list of feature lists."
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Path to write the decoded outcomes as JSON."
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to the configuration YAML file."
    )
    parser.add_argument(
        "--stack-size",
        type=int,
        default=None,
        help="Override the beam width from the configuration file."
    )
    parser.add_argument(
        "--nbest",
        type=int,
        default=0,
        help="Also write the N best sequences with their scores to <output>.nbest.json."
    )
    parser.add_argument(
        "--progress",
        dest="progress",
        action="store_true",
        help="Show a progress bar while decoding.",
    )
    parser.set_defaults(progress=None)
    args = parser.parse_args()

    try:
        # 1. Load configuration and model
        print(f"Loading configuration from {args.config}...")
        cfg = load_config(args.config)
        if args.stack_size is not None:
            cfg.stack_size = args.stack_size
        if args.progress is not None:
            cfg.show_progress = args.progress
        cfg.validate()

        if "model_weights" not in cfg.paths:
            raise ValueError("Configuration is missing paths.model_weights")
        weights_path = Path(args.config).parent / cfg.paths["model_weights"]
        print(f"Loading model weights from {weights_path}...")
        model = load_weights(str(weights_path))

        # 2. Load input data
        print(f"Loading steps from {args.input}...")
        steps = load_steps(args.input)

        # 3. Build scorer and extractors
        scorer = WeightedScorer(model["weights"], bias=model["bias"], output=cfg.scorer_output)
        extractors = cfg.build_extractors()

        # 4. Decode
        print(f"Decoding {len(steps)} steps with stack size {cfg.stack_size}...")
        decoder = SequenceDecoder(steps, cfg.stack_size, scorer, extractors, **cfg.decoder_options())
        outcomes = decoder.run()

        # 5. Write output
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        save_outcomes(str(output_path), outcomes, decoder.last_path_score)
        print(f"\nSuccessfully wrote {len(outcomes)} outcomes to {args.output}")

        if args.nbest > 0:
            nbest_path = output_path.with_suffix(".nbest.json")
            # Ranked from the beam `run` already produced.
            ranked = decoder.nbest(args.nbest)
            save_outcomes(
                str(nbest_path),
                [{"outcomes": r.outcome, "score": r.score} for r in ranked],
            )
            print(f"Successfully wrote {len(ranked)} ranked sequences to {nbest_path}")

    except (FileNotFoundError, ValueError, TypeError, DecoderError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
