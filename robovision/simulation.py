"""Real-time simulation of the robot arena that produces camera images."""

from __future__ import annotations

import enum
import logging
import struct
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from .image import Image, ImageError, ImageType, load_rgb_image
from .render import append, draw_laser, rotate
from .robot import Robot
from .robot_system import PI, Obstacle, RobotSystem
from .shared_memory import open_shared_memory
from .timer import high_resolution_time

logger = logging.getLogger(__name__)

DEFAULT_SHARED_NAME = "shared_memory_v"
SHARED_SIZE = 1000  # bytes in the shared memory block
PLAYER_ONE_OFFSET = 0
PLAYER_TWO_OFFSET = 500
START_FLAG_OFFSET = 900
SIM_DT = 1.0e-4  # simulation time step (s)
LASER_DURATION = 1.0  # the simulation freezes this long after a laser shot (s)

_FLAG = struct.Struct("<i")


class SimulationMode(enum.IntEnum):
    """Single player with a manual opponent, or one side of a two player game."""

    SINGLE = 0
    PLAYER_ONE = 1
    PLAYER_TWO = 2


@dataclass
class PlayerState:
    """One player's state as exchanged through shared memory."""

    sample: int = 0
    laser: int = 0
    theta: float = 0.0
    x: float = 0.0
    y: float = 0.0
    alpha: float = 0.0

    _layout = struct.Struct("<ii4d")

    @classmethod
    def size(cls) -> int:
        """Number of bytes of a packed state."""
        return cls._layout.size

    def pack(self) -> bytes:
        """Encode the state as bytes."""
        return self._layout.pack(
            self.sample, self.laser, self.theta, self.x, self.y, self.alpha
        )

    @classmethod
    def unpack(cls, data: bytes) -> "PlayerState":
        """Decode a state from the start of ``data``."""
        if len(data) < cls._layout.size:
            raise ValueError(
                f"player state needs {cls._layout.size} bytes, got {len(data)}"
            )
        sample, laser, theta, x, y, alpha = cls._layout.unpack_from(data, 0)
        return cls(sample, laser, theta, x, y, alpha)


def _as_rgb_image(source: Image | str | Path) -> Image:
    if isinstance(source, Image):
        if source.image_type is not ImageType.RGB:
            raise ImageError("simulation images must be RGB images")
        return source
    return load_rgb_image(source)


class Simulation:
    """Simulates the robots in real time and renders the arena as an RGB image."""

    def __init__(
        self,
        width: float,
        height: float,
        obstacles: Iterable[Obstacle],
        robot_image: Image | str | Path,
        opponent_image: Image | str | Path,
        background_image: Image | str | Path,
        obstacle_image: Image | str | Path,
        d: float = 121.0,
        lx: float = 31.0,
        ly: float = 0.0,
        ax: float = 37.0,
        ay: float = 0.0,
        alpha_max: float = PI / 2,
        n_robot: int = 2,
        shared_name: str | None = DEFAULT_SHARED_NAME,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.system = RobotSystem(d, lx, ly, ax, ay, alpha_max, n_robot)
        self.system.width = width
        self.system.height = height
        self.system.obstacles = list(obstacles)
        self.system.mode = SimulationMode.SINGLE

        self.robot_image = _as_rgb_image(robot_image)
        self.opponent_image = _as_rgb_image(opponent_image)
        self.background_image = _as_rgb_image(background_image)
        self.obstacle_image = _as_rgb_image(obstacle_image)

        self._clock = clock or high_resolution_time
        self._sleep = sleep or time.sleep
        self._tc0: float | None = None

        self._laser_previous = 0
        self._laser_previous_o = 0
        self._laser_fired = False
        self._laser_fired_o = False
        self.t_laser_start = 0.0
        self.t_laser_start_o = 0.0

        if shared_name is None:
            self._block = None
            self._buffer = bytearray(SHARED_SIZE)
        else:
            self._block = open_shared_memory(shared_name, SHARED_SIZE)
            self._buffer = self._block.buf
        self._closed = False

        self._write_player(PLAYER_ONE_OFFSET, PlayerState(0, 0, 0.0, 150.0, 150.0, 0.0))
        self._write_player(PLAYER_TWO_OFFSET, PlayerState(0, 0, 0.0, 300.0, 250.0, 0.0))

    @property
    def robot(self) -> Robot:
        """The robot under control."""
        return self.system.robot

    @property
    def opponent(self) -> Robot | None:
        """The opponent, or None when there is none."""
        return self.system.opponent

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("simulation is closed")

    def _write_player(self, offset: int, state: PlayerState) -> None:
        self._buffer[offset:offset + PlayerState.size()] = state.pack()

    def _read_player(self, offset: int) -> PlayerState:
        return PlayerState.unpack(bytes(self._buffer[offset:offset + PlayerState.size()]))

    def set_inputs(
        self,
        pw_l: int,
        pw_r: int,
        pw_laser: int,
        laser: int,
        light: float,
        light_gradient: float,
        light_dir: float,
        image_noise: float,
        max_speed: float,
        opponent_max_speed: float,
    ) -> None:
        """Set the robot inputs, the lighting parameters and the maximum speeds."""
        self.system.light = light
        self.system.light_gradient = light_gradient
        self.system.light_dir = light_dir
        self.system.image_noise = image_noise
        self.robot.v_max = max_speed
        self.robot.set_inputs(pw_l, pw_r, pw_laser, laser)
        if self.opponent is not None:
            self.opponent.v_max = opponent_max_speed

    def set_opponent_inputs(
        self, pw_l: int, pw_r: int, pw_laser: int, laser: int, max_speed: float
    ) -> None:
        """Set the opponent inputs by hand; ignored without an opponent."""
        opponent = self.opponent
        if opponent is not None:
            opponent.v_max = max_speed
            opponent.set_inputs(pw_l, pw_r, pw_laser, laser)

    def set_mode(self, mode: SimulationMode | int, level: int) -> None:
        """Choose single player or two player mode and the difficulty level."""
        try:
            chosen = SimulationMode(mode)
        except ValueError as exc:
            raise ValueError(f"invalid simulation mode: {mode!r}") from exc
        if chosen is not SimulationMode.SINGLE and self.opponent is None:
            raise ValueError("two player mode needs an opponent")
        self.system.mode = chosen
        self.system.level = level

    def set_robot_position(self, x: float, y: float, theta: float) -> None:
        """Place the robot at (x, y) pixels with heading ``theta`` (rad)."""
        self.robot.theta = theta
        self.robot.x = x
        self.robot.y = y
        self.robot.calculate_outputs()

    def set_opponent_position(self, x: float, y: float, theta: float) -> None:
        """Place the opponent; ignored without an opponent."""
        opponent = self.opponent
        if opponent is not None:
            opponent.theta = theta
            opponent.x = x
            opponent.y = y
            opponent.calculate_outputs()

    def _exchange_states(self) -> None:
        if self.system.mode is SimulationMode.PLAYER_ONE:
            read_offset, write_offset = PLAYER_TWO_OFFSET, PLAYER_ONE_OFFSET
        else:
            read_offset, write_offset = PLAYER_ONE_OFFSET, PLAYER_TWO_OFFSET

        other = self._read_player(read_offset)
        opponent = self.opponent
        opponent.theta = other.theta
        opponent.x = other.x
        opponent.y = other.y
        opponent.alpha = other.alpha
        opponent.laser = other.laser

        robot = self.robot
        self._write_player(
            write_offset,
            PlayerState(other.sample, robot.laser, robot.theta, robot.x, robot.y, robot.alpha),
        )

    def _draw_robot(self, rgb: Image, robot: Robot, sprite: Image) -> None:
        theta = robot.theta - PI / 2
        i = int(robot.x - robot.xa) - sprite.width // 2
        j = int(robot.y - robot.ya) - sprite.height // 2
        rotated = rotate(sprite, self.background_image, theta, i, j)
        append(rgb, rotated, i, j)

    def acquire_image(self) -> Image:
        """Run the simulation up to the current clock time and render the arena."""
        self._check_open()
        if self._tc0 is None:
            self._tc0 = self._clock()
        tc = self._clock() - self._tc0

        # a laser shot freezes the simulation for a while
        if self._laser_fired:
            self._sleep(LASER_DURATION)
            self._tc0 = self._clock() - tc
            self._laser_fired = False
        if self._laser_fired_o:
            self._sleep(LASER_DURATION)
            self._tc0 = self._clock() - tc
            self._laser_fired_o = False

        while self.system.t < tc:
            self.system.sim_step(SIM_DT)

        if self.system.mode in (SimulationMode.PLAYER_ONE, SimulationMode.PLAYER_TWO):
            self._exchange_states()

        rgb = self.background_image.clone()

        ic = self.obstacle_image.width // 2
        jc = self.obstacle_image.height // 2
        for obstacle in self.system.obstacles:
            append(rgb, self.obstacle_image, int(obstacle.x) - ic, int(obstacle.y) - jc)

        opponent = self.opponent
        if opponent is not None:
            self._draw_robot(rgb, opponent, self.opponent_image)
        self._draw_robot(rgb, self.robot, self.robot_image)

        robot = self.robot
        if robot.laser and not self._laser_previous:
            self.t_laser_start = self.system.t
            self._laser_fired = True
            logger.info("laser fired !")
        self._laser_previous = robot.laser
        if self._laser_fired:
            draw_laser(robot, rgb)

        if opponent is not None:
            if opponent.laser and not self._laser_previous_o:
                self.t_laser_start_o = self.system.t
                self._laser_fired_o = True
                logger.info("opponent laser fired !")
            self._laser_previous_o = opponent.laser
            if self._laser_fired_o:
                draw_laser(opponent, rgb)

        return rgb

    def wait_for_player(self, poll_interval: float = 0.001) -> None:
        """Clear the start flag and block until the other player joins."""
        self._check_open()
        _FLAG.pack_into(self._buffer, START_FLAG_OFFSET, 0)
        logger.info("waiting for player to join ...")
        while _FLAG.unpack_from(self._buffer, START_FLAG_OFFSET)[0] != 1:
            self._sleep(poll_interval)

    def join_player(self) -> None:
        """Signal the waiting player that this player has joined."""
        self._check_open()
        logger.info("joining other player ...")
        _FLAG.pack_into(self._buffer, START_FLAG_OFFSET, 1)

    def close(self) -> None:
        """Release the shared memory block; further use raises RuntimeError."""
        if self._closed:
            return
        self._closed = True
        self._buffer = bytearray()
        if self._block is not None:
            self._block.close()
            self._block = None

    def __enter__(self) -> "Simulation":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()