import argparse, os, json, math
from collections import namedtuple
from datetime import datetime, timedelta
from types import MappingProxyType
import numpy as np

from ecosphere.config import load_cfg


class InvalidArgument(ValueError):
    pass


Profile = namedtuple("Profile", ["energy", "water", "waste", "carbon"])

ARCHETYPES = MappingProxyType({
    "Campus": Profile(500, 1000, 200, 350),
    "Office": Profile(300, 400, 50, 200),
    "Residential": Profile(150, 600, 30, 100),
    "Hospital": Profile(800, 2000, 400, 600),
})

METRICS = ("energy", "carbon", "water", "waste")
CARBON_FACTOR = 0.7


def get_profile(building_type):
    try:
        return ARCHETYPES[building_type]
    except (KeyError, TypeError):
        raise InvalidArgument(f"unknown building type {building_type!r}, expected one of {sorted(ARCHETYPES)}")


def diurnal_cycle(hour):
    # 0 around 00:00, 1 around 12:00
    return math.sin((hour - 6) * math.pi / 12) * 0.5 + 0.5


def current_hour(now=None):
    return (now or datetime.now()).replace(minute=0, second=0, microsecond=0)


def generate(building_type, hours=24, now=None, rng=None):
    """Simulate hourly utility observations for one building.

    Returns ``hours + 1`` records, oldest first, ending at the whole hour
    containing ``now`` (the current hour by default). Magnitudes follow the
    diurnal cycle scaled by one random multiplier per hour; carbon is derived
    from the rounded energy figure.
    """
    base = get_profile(building_type)
    if isinstance(hours, bool) or not isinstance(hours, (int, np.integer)) or hours < 0:
        raise InvalidArgument(f"hours must be a non-negative integer, got {hours!r}")
    now = current_hour(now)
    rng = rng if rng is not None else np.random.default_rng()

    records = []
    for i in range(int(hours), -1, -1):
        t = now - timedelta(hours=i)
        cycle = diurnal_cycle(t.hour)
        randomness = rng.uniform(0.8, 1.2)

        energy = round(base.energy * (0.3 + cycle * 0.7) * randomness)
        water = base.water * (0.2 + cycle * 0.8) * randomness
        waste = base.waste * (0.1 + cycle * 0.9) * randomness
        temperature = 20 + math.sin((t.hour - 8) * math.pi / 12) * 5 + rng.uniform(0, 2)

        records.append({
            "timestamp": t.isoformat(),
            "energy": energy,
            "water": round(water),
            "waste": round(waste),
            "carbon": round(energy * CARBON_FACTOR),
            "occupancy": round((0.1 + cycle * 0.9) * 100),
            "temperature": float(temperature),
        })
    return records


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--archetype", choices=sorted(ARCHETYPES))
    p.add_argument("--hours", type=int)
    p.add_argument("--seed", type=int)
    p.add_argument("--config")
    args = p.parse_args()

    cfg = load_cfg(args.config)
    sim = cfg["simulation"]
    archetype = args.archetype or sim["default_archetype"]
    hours = args.hours if args.hours is not None else sim["history_hours"]
    seed = args.seed if args.seed is not None else sim["seed"]

    raw_dir = cfg["ingest"]["raw_dir"]
    os.makedirs(raw_dir, exist_ok=True)

    records = generate(archetype, hours, rng=np.random.default_rng(seed))
    path = os.path.join(raw_dir, f"{archetype}.jsonl")
    with open(path, "w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec) + "\n")

    print(f"Wrote {len(records)} {archetype} records to {path}")


if __name__ == "__main__":
    main()
