"""
Directory setup for the flood-labeling pipeline.

Layout under the base directory:
- analysis/: SQLite table, per-run Parquet and run summaries
- plots/: grid label plots
- logs/: pipeline log files
- runtime_config_{run_id}.json files in the base directory itself
"""

from pathlib import Path


def setup_output_directories(base_output_dir=None):
    """
    Set up organized output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. If None, prompts user for input.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'analysis', 'plots', 'logs'
    """

    if base_output_dir is None:
        print("\n" + "=" * 70)
        print("FLOOD PIPELINE - OUTPUT DIRECTORY SETUP")
        print("=" * 70)
        print("\nCurrent location: ", Path.cwd())
        print("\nDefault options:")
        print("  1. Current directory: ./sarflood_output")
        print("  2. Home directory: ~/sarflood_output")
        print("  3. Custom path")

        choice = input("\nSelect option (1/2/3) [default=1]: ").strip() or "1"

        if choice == "2":
            base_output_dir = Path.home() / "sarflood_output"
        elif choice == "3":
            path_input = input("Enter custom path (use ~ for home): ").strip()
            base_output_dir = Path(path_input).expanduser()
        else:
            base_output_dir = Path.cwd() / "sarflood_output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "analysis": base_output_dir / "analysis",
        "plots": base_output_dir / "plots",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    print("\nOutput directories created:")
    for key, path in directories.items():
        print(f"  {key:12s}: {path}")
    print("=" * 70 + "\n")

    return directories

