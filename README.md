# robovision

A two-robot arena simulation paired with a small image-processing toolkit.
The simulation renders a top-down RGB view of a robot, an optional opponent
and obstacles on a background. The vision functions turn those frames into
binary masks, labelled regions, centroids and average colours, so that the
coloured markers on each robot can be found.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command line

```
robovision
```

This runs the tracking loop. It loads `robot_A.bmp`, `robot_B.bmp`,
`background.bmp` and `obstacle.bmp` from the current directory. It places
the robot at (470, 170) and the opponent at (150, 375) and sets fixed servo
inputs for both. It then runs the simulation in real time and passes every
frame through `robovision.tracker.process_frame`. The loop stops on Ctrl-C
or after the requested number of frames, and the command prints `done.`.

Options:

- `--robot`, `--opponent`, `--background`, `--obstacle`: paths of the four
  bitmaps. The defaults are the file names above.
- `--frames N`: process `N` frames and stop. `0`, the default, runs until
  interrupted.
- `--output PATH`: save the last annotated frame, with every object
  centroid marked in magenta, to `PATH`.
- `--shared-name NAME`: name of the shared memory block. The default is
  `shared_memory_v`.
- `--no-shared`: keep the player state in a private buffer and use no
  shared memory.

## Library overview

- `robovision.image`
  - `Image` is a dataclass with `image_type`, `width`, `height`, `data` (a
    numpy array) and `nlabels`. It has `Image.blank`, `pixel_count`,
    `same_size` and `clone`.
  - `ImageType` is one of `RGB`, `GREY` or `LABEL`, with the pixel types
    uint8 × 3, uint8 and uint16.
  - `load_rgb_image` and `save_rgb_image` load and save images. When the
    path has no suffix, the image is saved as a bitmap.
  - Invalid images and operations raise `ImageError`.
- `robovision.vision`
  - `copy(a, image_type)` also converts between RGB and grey.
  - The filters are `invert`, `scale`, `convolution`, `lowpass_filter`,
    `highpass_filter`, `gaussian_filter` and `threshold`.
  - `histogram` returns the bin counts together with the minimum and the
    maximum.
  - The morphology functions are `dilate`, `dilate_fast` and `erode`.
  - `label_image` returns a label image and stores the object count in its
    `nlabels`.
  - `centroid` returns `(ic, jc)`.
  - `draw_point` and `draw_point_rgb` draw a point.
  - The `draw_*` functions paint in place. Every other function returns a
    new image.
- `robovision.robot`: `Robot` is a differential-drive model. It is driven
  by servo pulse widths, limited to 1000–2000 µs, through `set_inputs`, and
  advanced by Euler steps with `sim_step`.
- `robovision.robot_system`: `RobotSystem` holds several robots that advance
  together. `Obstacle` gives an obstacle's position and size.
- `robovision.render`: `rotate`, `append`, `draw_laser` and
  `draw_point_rgb_laser` build the arena view.
- `robovision.simulation`
  - `Simulation` is a context manager with these methods:
    - `set_inputs` and `set_opponent_inputs`
    - `set_mode`
    - `set_robot_position` and `set_opponent_position`
    - `acquire_image`
    - `wait_for_player` and `join_player`
    - `close`
  - `SimulationMode` selects a single-player or a two-player run.
  - `PlayerState` holds the state that the two players exchange through
    shared memory.
- `robovision.shared_memory`: `open_shared_memory` creates a named block,
  or attaches to it if it already exists.
- `robovision.timer`: `high_resolution_time` and `high_resolution_count`.
- `robovision.tracker`: the marker-tracking pipeline. It has `features`,
  `build_black_mask`, `build_color_mask`, `combine_masks`,
  `remove_small_areas`, `set_robot_centroids`, `process_frame`, `Item`,
  `MarkerPositions` and `main`.

## Example

```python
from robovision.image import ImageType, load_rgb_image
from robovision import vision

rgb = load_rgb_image("background.bmp")
grey = vision.copy(rgb, ImageType.GREY)
binary = vision.threshold(vision.lowpass_filter(vision.scale(grey)), 70)
label = vision.label_image(binary)
for n in range(1, label.nlabels + 1):
    print(n, vision.centroid(binary, label, n))
```

Image coordinates have their origin at the lower-left corner: `i` increases
to the right and `j` increases upwards. Colour pixels are stored in B, G, R
order.

## What it does not do

- It does not show frames on screen. The command only processes frames and
  can save the last one.
- It does not capture images from a camera.
- It does not read or write video.
- The lighting and noise parameters of `Simulation.set_inputs` are stored
  but do not change the rendered image.