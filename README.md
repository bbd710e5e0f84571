# posefilter

Smooths the noisy 4x4 poses of tracked objects over time.

Each pose goes through two exponential moving average (EMA) stages, one after the other. Translation is smoothed linearly. Rotation is smoothed with quaternion SLERP.

The smoothing factor comes from the time between updates:

    alpha = 1 - exp(-dt / SmoothingTimeConstant)

Alpha is recomputed only when `dt` leaves the band
`[previous_dt / DtChangeSignificanceFactor, previous_dt * DtChangeSignificanceFactor]`.
It is always computed for the first interval.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Usage

### A single filter

```python
import numpy as np
from posefilter.ema_filter import ObjectPoseEMAFilter

filt = ObjectPoseEMAFilter("settings.yaml")

raw = np.eye(4, dtype=np.float32)
raw[:3, 3] = [0.1, 0.2, 1.5]

smoothed = filt.filter_pose(raw, 1.0)   # 4x4 float32 array
```

`filter_pose(raw_pose, scale)` takes a pose whose 3x3 block may be a rotation multiplied by a uniform `scale`:

- The block is divided by `scale` before it is turned into a quaternion. A scale whose magnitude is below `1e-9` is not divided out.
- The scale is put back on the rotation of the returned pose.

The first pose passes through. It also seeds both smoothing stages. Later poses are blended into the two stages, and the second stage is returned.

`ObjectPoseEMAFilter(setting_path="", clock=time.monotonic)` takes an optional `clock`. It must be a callable that returns seconds. Pass your own to make the timing deterministic.

The filter's state can be read from these attributes:

- `settings`: a `FilterSettings`
- `current_state` and `second_pass_state`: `SmoothedPoseState` objects, each with `translation`, a `(w, x, y, z)` `rotation` and `last_update_timestamp`
- `alpha`
- `previous_dt`
- `is_first_pose`

`is_dt_change_significant(dt)` tells whether a new interval would trigger a new alpha.

### Many objects

```python
from posefilter.manager import ObjectFilterManager

manager = ObjectFilterManager("settings.yaml")

smoothed = manager.filter_object_pose(7, raw, 1.0)
manager.has_filter(7)      # True
manager.remove_filter(7)
manager.has_filter(7)      # False
```

The manager creates an `ObjectPoseEMAFilter` for an object id the first time it sees that id, through `get_or_create_filter`. Each filter is created with the manager's `setting_path`. Filter creation is guarded by a lock.

With `filter_active=False`:

- `filter_object_pose` returns the raw pose unchanged, as a float32 array.
- `get_or_create_filter` raises `RuntimeError`.

## Settings file

The settings file is YAML with these keys:

```yaml
%YAML:1.0
ObjectPoseEMAFilter.MaxNumberOfObjectsToFilter: 5
ObjectPoseEMAFilter.DtChangeSignificanceFactor: 1.2
ObjectPoseEMAFilter.SmoothingTimeConstant: 0.1
```

`read_settings_file(path)` loads the file into a dict:

- A leading `%YAML:1.0` line is skipped.
- `!!opencv-*` tags are accepted.
- A file that does not hold a mapping raises `ValueError`.

`ObjectPoseEMAFilter.parse_filter_params(settings)` takes the three values from any mapping and stores them, at single precision, in an immutable `FilterSettings`. A key that is missing or not numeric is logged as an error, keeps its default, and makes the method return `False`. A file that cannot be read is logged, and all defaults are kept.

| Key | Default |
|---|---|
| `MaxNumberOfObjectsToFilter` | 5 |
| `DtChangeSignificanceFactor` | 1.2 |
| `SmoothingTimeConstant` | 0.0 |

With no settings path, all defaults are used. With the default time constant of 0, alpha is 1, so every new pose replaces the smoothed state.

`MaxNumberOfObjectsToFilter` is read and stored, but nothing uses it. The manager places no limit on how many filters it holds.

Messages go through the standard `logging` module, under the loggers of the modules.

## Geometry helpers

`posefilter.geometry` holds the pieces the filter is built from. Quaternions are in `(w, x, y, z)` order.

- `get_translation(pose)`: the translation column, as float64.
- `extract_rotation_without_scale(pose, scale)`: the 3x3 block divided by `scale`.
- `rotation_matrix_to_quaternion(rotation)` and `quaternion_to_rotation_matrix(quaternion)`: convert between the two forms.
- `normalize_quaternion(quaternion)`: scales to unit length. A zero quaternion is returned unchanged.
- `slerp(start, end, t)`: spherical interpolation along the shorter arc.
- `euler_angles_zyx(rotation)`: `(yaw, pitch, roll)` with `rotation = Rz(yaw) @ Ry(pitch) @ Rx(roll)`. The yaw is kept in `[0, pi]`.
- `construct_pose_matrix(translation, quaternion, scaling)`: a float32 4x4 pose from a translation, a normalised quaternion and a 3x3 scaling matrix.

## What it does not do

`posefilter` is a library only. It has no command-line program. It does not detect or track objects, and it does not read camera or tracker output. You feed it 4x4 poses and uniform scales, and it returns smoothed poses.