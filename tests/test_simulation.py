import struct
import uuid
from multiprocessing import shared_memory as mp_shared_memory

import numpy as np
import pytest

from robovision.image import Image, ImageType, save_rgb_image
from robovision.robot_system import Obstacle
from robovision.shared_memory import open_shared_memory
from robovision.simulation import (
    LASER_DURATION,
    PLAYER_ONE_OFFSET,
    PLAYER_TWO_OFFSET,
    START_FLAG_OFFSET,
    PlayerState,
    Simulation,
    SimulationMode,
)

BG_W, BG_H = 200, 150


class FakeClock:
    def __init__(self, value=0.0):
        self.value = value

    def __call__(self):
        return self.value


class FakeSleep:
    def __init__(self, action=None):
        self.calls = []
        self.action = action

    def __call__(self, seconds):
        self.calls.append(seconds)
        if self.action is not None:
            self.action()


def solid(width, height, bgr):
    image = Image.blank(ImageType.RGB, width, height)
    image.data[:, :] = bgr
    return image


def make_sim(n_robot=2, shared_name=None, obstacles=(), clock=None, sleep=None, **images):
    sim = Simulation(
        BG_W,
        BG_H,
        obstacles,
        images.get("robot", solid(21, 21, (255, 255, 255))),
        images.get("opponent", solid(21, 21, (255, 0, 0))),
        images.get("background", Image.blank(ImageType.RGB, BG_W, BG_H)),
        images.get("obstacle", solid(11, 11, (0, 0, 255))),
        n_robot=n_robot,
        shared_name=shared_name,
        clock=clock or FakeClock(),
        sleep=sleep or FakeSleep(),
    )
    sim.set_robot_position(100, 75, 0.0)
    sim.set_opponent_position(30, 30, 0.0)
    return sim


@pytest.fixture
def shared_name():
    name = f"rv_{uuid.uuid4().hex[:12]}"
    yield name
    try:
        block = mp_shared_memory.SharedMemory(name=name)
    except FileNotFoundError:
        return
    block.close()
    block.unlink()


def test_player_state_round_trip():
    state = PlayerState(3, 1, 0.25, 12.5, -4.0, 0.75)
    data = state.pack()
    assert len(data) == PlayerState.size()
    assert PlayerState.unpack(data) == state


def test_player_state_unpack_short_data():
    with pytest.raises(ValueError):
        PlayerState.unpack(b"\x00" * 10)


def test_initial_shared_states(shared_name):
    sim = make_sim(shared_name=shared_name)
    block = open_shared_memory(shared_name, 1000)
    try:
        size = PlayerState.size()
        first = PlayerState.unpack(bytes(block.buf[PLAYER_ONE_OFFSET:PLAYER_ONE_OFFSET + size]))
        second = PlayerState.unpack(bytes(block.buf[PLAYER_TWO_OFFSET:PLAYER_TWO_OFFSET + size]))
    finally:
        block.close()
        sim.close()
    assert first == PlayerState(0, 0, 0.0, 150.0, 150.0, 0.0)
    assert second == PlayerState(0, 0, 0.0, 300.0, 250.0, 0.0)


def test_two_player_exchange(shared_name):
    sim = make_sim(shared_name=shared_name)
    sim.set_mode(SimulationMode.PLAYER_ONE, 1)
    block = open_shared_memory(shared_name, 1000)
    size = PlayerState.size()
    try:
        other = PlayerState(7, 0, 0.5, 150.0, 100.0, 0.1)
        block.buf[PLAYER_TWO_OFFSET:PLAYER_TWO_OFFSET + size] = other.pack()
        sim.acquire_image()
        written = PlayerState.unpack(bytes(block.buf[PLAYER_ONE_OFFSET:PLAYER_ONE_OFFSET + size]))
    finally:
        block.close()
        sim.close()
    assert (sim.opponent.theta, sim.opponent.x, sim.opponent.y, sim.opponent.alpha) == (
        other.theta, other.x, other.y, other.alpha,
    )
    robot = sim.robot
    assert written == PlayerState(7, robot.laser, robot.theta, robot.x, robot.y, robot.alpha)


def test_join_player_sets_flag(shared_name):
    sim = make_sim(shared_name=shared_name)
    block = open_shared_memory(shared_name, 1000)
    try:
        sim.join_player()
        flag = struct.unpack_from("<i", block.buf, START_FLAG_OFFSET)[0]
    finally:
        block.close()
        sim.close()
    assert flag == 1


def test_wait_for_player_returns_when_joined():
    holder = {}
    sleep = FakeSleep(action=lambda: holder["sim"].join_player())
    sim = make_sim(sleep=sleep)
    holder["sim"] = sim
    sim.wait_for_player(0.001)
    assert sleep.calls == [0.001]


def test_acquire_image_draws_robot_near_its_position():
    sim = make_sim()
    image = sim.acquire_image()
    assert (image.width, image.height) == (BG_W, BG_H)
    white = np.all(image.data == 255, axis=2)
    rows, cols = np.nonzero(white)
    assert rows.size > 0
    cx = sim.robot.x - sim.robot.xa
    cy = sim.robot.y - sim.robot.ya
    assert abs(cols.mean() - cx) <= 11
    assert abs(rows.mean() - cy) <= 11
    assert not image.data[0:5, BG_W - 5:].any()


def test_acquire_image_leaves_background_untouched():
    background = Image.blank(ImageType.RGB, BG_W, BG_H)
    sim = make_sim(background=background)
    sim.acquire_image()
    assert not background.data.any()


def test_obstacle_is_drawn():
    sim = make_sim(obstacles=[Obstacle(170.0, 120.0)])
    image = sim.acquire_image()
    assert tuple(image.data[120, 170]) == (0, 0, 255)


def test_opponent_not_drawn_without_opponent():
    sim = make_sim(n_robot=1)
    image = sim.acquire_image()
    assert sim.opponent is None
    assert not np.all(image.data == (255, 0, 0), axis=2).any()


def test_simulation_runs_until_clock_time():
    clock = FakeClock(0.0)
    sim = make_sim(clock=clock)
    sim.set_inputs(1000, 2000, 1500, 0, 1.0, 1.0, 1.0, 1.0, 100.0, 100.0)
    start_x = sim.robot.x
    sim.acquire_image()
    clock.value = 0.01
    sim.acquire_image()
    assert 0.01 <= sim.system.t < 0.01 + 2e-4
    assert sim.robot.x > start_x


def test_laser_draws_and_freezes():
    sleep = FakeSleep()
    sim = make_sim(sleep=sleep)
    sim.set_inputs(1500, 1500, 1500, 1, 1.0, 1.0, 1.0, 1.0, 100.0, 100.0)
    image = sim.acquire_image()
    green = np.all(image.data == (0, 255, 0), axis=2)
    assert green.any()
    sim.acquire_image()
    assert sleep.calls == [LASER_DURATION]


def test_set_inputs_sets_lighting_and_speeds():
    sim = make_sim()
    sim.set_inputs(1500, 1500, 1500, 0, 0.5, 0.25, 2.0, 0.1, 80.0, 60.0)
    assert (sim.system.light, sim.system.light_gradient) == (0.5, 0.25)
    assert (sim.system.light_dir, sim.system.image_noise) == (2.0, 0.1)
    assert sim.robot.v_max == 80.0
    assert sim.opponent.v_max == 60.0


def test_set_opponent_inputs():
    sim = make_sim()
    sim.set_opponent_inputs(1500, 2000, 1500, 1, 50.0)
    assert sim.opponent.v_max == 50.0
    assert sim.opponent.vr == 50.0
    assert sim.opponent.laser == 1


def test_set_mode_rejects_invalid_mode():
    sim = make_sim()
    with pytest.raises(ValueError):
        sim.set_mode(5, 1)


def test_two_player_mode_needs_opponent():
    sim = make_sim(n_robot=1)
    with pytest.raises(ValueError):
        sim.set_mode(SimulationMode.PLAYER_TWO, 1)


def test_set_mode_stores_level():
    sim = make_sim()
    sim.set_mode(0, 3)
    assert sim.system.mode is SimulationMode.SINGLE
    assert sim.system.level == 3


def test_closed_simulation_raises():
    with make_sim() as sim:
        pass
    with pytest.raises(RuntimeError):
        sim.acquire_image()
    with pytest.raises(RuntimeError):
        sim.join_player()


def test_images_loaded_from_paths(tmp_path):
    paths = {}
    for key, image in {
        "robot": solid(21, 21, (255, 255, 255)),
        "opponent": solid(21, 21, (255, 0, 0)),
        "background": Image.blank(ImageType.RGB, BG_W, BG_H),
        "obstacle": solid(11, 11, (0, 0, 255)),
    }.items():
        path = tmp_path / f"{key}.bmp"
        save_rgb_image(path, image)
        paths[key] = path
    sim = make_sim(**paths)
    assert (sim.background_image.width, sim.background_image.height) == (BG_W, BG_H)
    assert np.array_equal(sim.robot_image.data, solid(21, 21, (255, 255, 255)).data)