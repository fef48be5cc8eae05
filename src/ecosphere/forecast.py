from datetime import timedelta
import numpy as np, pandas as pd

from ecosphere.data_simulator import InvalidArgument, METRICS, diurnal_cycle


def _anchor(history):
    if isinstance(history, pd.DataFrame):
        history = history.to_dict(orient="records")
    if history is None or len(history) == 0:
        raise InvalidArgument("history must contain at least one observation")
    last = history[-1]
    try:
        ts = pd.Timestamp(last["timestamp"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidArgument(f"last observation has no usable timestamp: {e}")
    if pd.isna(ts):
        raise InvalidArgument("last observation has no usable timestamp")
    ts = ts.to_pydatetime()
    values = {}
    for metric in METRICS:
        try:
            val = float(last[metric])
        except (KeyError, TypeError, ValueError):
            raise InvalidArgument(f"last observation has no numeric {metric!r}")
        if not np.isfinite(val):
            raise InvalidArgument(f"last observation has non-finite {metric!r}")
        # imported data may carry negatives; projections are floored at zero
        values[metric] = max(0.0, val)
    return ts, values


def forecast(history, horizon=48, rng=None):
    """Project each tracked metric ``horizon`` hours past the last observation.

    Only the final observation anchors the projection. There is no trend
    fitting over the rest of ``history``; the shape comes from the diurnal
    cycle and the spread from the random draws.
    """
    if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)) or horizon < 1:
        raise InvalidArgument(f"horizon must be a positive integer, got {horizon!r}")
    last_time, anchor = _anchor(history)
    rng = rng if rng is not None else np.random.default_rng()

    forecasts = {}
    for metric in METRICS:
        points = []
        for i in range(1, int(horizon) + 1):
            t = last_time + timedelta(hours=i)
            cycle = diurnal_cycle(t.hour)
            baseline = anchor[metric] * (0.6 + cycle * 0.4) * rng.uniform(0.9, 1.1)
            predicted = baseline * rng.uniform(0.8, 0.9)
            points.append({
                "timestamp": t.isoformat(),
                "label": t.strftime("%H:%M"),
                "predicted": round(predicted),
                "baseline": round(baseline),
            })
        forecasts[metric] = points
    return forecasts


def forecast_frame(forecasts, metric):
    if metric not in forecasts:
        raise InvalidArgument(f"no forecast for metric {metric!r}")
    df = pd.DataFrame(forecasts[metric])
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    return df
