import argparse, os, json, math, pandas as pd

from ecosphere.config import load_cfg


def coerce(value):
    """Number when the text parses as a finite one, otherwise the text itself."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        num = float(value)
    except ValueError:
        return value
    return num if math.isfinite(num) else value


def parse_csv(text):
    lines = text.splitlines()
    if not lines:
        return []
    headers = [h.strip().lower() for h in lines[0].split(",")]

    records = []
    for line in lines[1:]:
        if not line.strip():
            continue
        values = line.split(",")
        entry = {}
        for i, key in enumerate(headers):
            entry[key] = coerce(values[i].strip()) if i < len(values) else None
        records.append(entry)
    return records


def load_csv(path):
    with open(path, "r", encoding="utf-8") as f:
        return parse_csv(f.read())


def read_jsonl(path):
    records = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                records.append(json.loads(line))
    return records


def to_frame(records):
    df = pd.DataFrame(records)
    if "timestamp" in df:
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
    return df


def main():
    p = argparse.ArgumentParser()
    p.add_argument("csv")
    p.add_argument("--config")
    args = p.parse_args()

    cfg = load_cfg(args.config)
    raw_dir = cfg["ingest"]["raw_dir"]

    records = load_csv(args.csv)
    if not records:
        print(f"No rows found in {args.csv}; nothing written.")
        return

    os.makedirs(raw_dir, exist_ok=True)
    stem = os.path.splitext(os.path.basename(args.csv))[0]
    out_path = os.path.join(raw_dir, f"{stem}.jsonl")
    with open(out_path, "w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec) + "\n")
    print(f"Wrote {len(records)} records to {out_path}")


if __name__ == "__main__":
    main()
