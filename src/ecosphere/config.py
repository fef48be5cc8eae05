import os, copy, yaml

DEFAULT_PATH = "configs/config.yaml"

DEFAULTS = {
    "simulation": {"default_archetype": "Campus", "history_hours": 24, "forecast_hours": 48, "seed": None},
    "ingest": {"raw_dir": "data/raw"},
    "insights": {"model": "gemini-2.0-flash", "api_key_env": "GEMINI_API_KEY", "timeout_seconds": 30, "window_hours": 24},
    "score": {"base": 68},
    "dashboard": {"default_metric": "energy"},
    "report": {"out_dir": "reports"},
}


def _merge(base, override):
    out = copy.deepcopy(base)
    for key, val in (override or {}).items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], val)
        else:
            out[key] = val
    return out


def load_cfg(path=None):
    """Read the YAML config, filling any missing keys from DEFAULTS.

    The path comes from the argument, then $ECOSPHERE_CONFIG, then
    configs/config.yaml. A missing file yields the defaults.
    """
    path = path or os.environ.get("ECOSPHERE_CONFIG", DEFAULT_PATH)
    if not os.path.exists(path):
        return copy.deepcopy(DEFAULTS)
    with open(path, "r") as f:
        return _merge(DEFAULTS, yaml.safe_load(f))
