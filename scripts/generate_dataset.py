"""
Store Sales Dataset Generator
Writes regions.csv, stores.csv and sales.csv for local pipeline runs
"""

from pathlib import Path

from store_analytics.data.generators import DataGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "raw"


def main():
    print("=" * 60)
    print("Store Sales Dataset Generator")
    print("=" * 60 + "\n")

    data = DataGenerator(output_dir=str(OUTPUT_DIR), seed=42).generate_all(
        n_regions=8,
        n_stores=200,
        days=365,
    )

    print("\n" + "=" * 60)
    print("Dataset Generation Complete!")
    print("=" * 60)
    print(f"\nOutput: {OUTPUT_DIR}\n")

    for name, df in data.items():
        size = (OUTPUT_DIR / f"{name}.csv").stat().st_size / 1024 / 1024
        print(f"   {name}.csv: {len(df):,} rows ({size:.2f} MB)")


if __name__ == "__main__":
    main()
