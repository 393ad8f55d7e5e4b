"""Per-tab session: local play, room lifecycle, move/signal routing and liveness."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, Optional, Sequence

from .config import Settings, get_settings
from .errors import IllegalMove, NotYourTurn, RoomFull, StaleMessage
from .game import O, X, GameResult, Mark
from .heartbeat import HeartbeatMonitor
from .leaderboard import Leaderboard
from .match import MatchController
from .messages import Message, MoveMessage, RoomRecord, SignalMessage, SignalType
from .rooms import RoomRegistry, normalize_code
from .store import KeyValueStore
from .timers import Scheduler, ScopedTimer
from .transport import SyncTransport

logger = logging.getLogger(__name__)


class Mode(StrEnum):
    LOCAL = "local"
    ONLINE = "online-tab"


class Role(StrEnum):
    HOST = "host"
    GUEST = "guest"


class RoomStatus(StrEnum):
    IDLE = "idle"
    WAITING = "waiting"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


def default_names() -> Dict[Mark, str]:
    return {X: "Player X", O: "Player O"}


class SessionListener:
    """Notifications for the presentation layer. Every hook is a no-op by default."""

    def on_result(self, result: GameResult) -> None:
        pass

    def on_score_changed(self, mark: Mark, score: int) -> None:
        pass

    def on_match_won(self, mark: Mark) -> None:
        pass

    def on_opponent_connected(self) -> None:
        pass

    def on_opponent_disconnected(self) -> None:
        pass

    def on_room_created(self, code: str) -> None:
        pass

    def on_room_joined(self, host_name: str) -> None:
        pass

    def on_board_changed(self, board: Sequence[str], current_player: Mark) -> None:
        pass

    def on_game_reset(self) -> None:
        pass

    def on_match_reset(self) -> None:
        pass

    def on_countdown_finished(self) -> None:
        pass


@dataclass
class SessionContext:
    mode: Mode = Mode.LOCAL
    room_code: Optional[str] = None
    my_mark: Optional[Mark] = None
    role: Optional[Role] = None
    status: RoomStatus = RoomStatus.IDLE
    opponent_name: Optional[str] = None
    opponent_online: bool = False
    # Timestamp of the newest peer message applied (moves and signals)
    last_remote_ts: float = 0.0
    player_names: Dict[Mark, str] = field(default_factory=default_names)

    def clear_room(self) -> None:
        self.room_code = None
        self.my_mark = None
        self.role = None
        self.status = RoomStatus.IDLE
        self.opponent_name = None
        self.opponent_online = False
        self.last_remote_ts = 0.0


class SessionOrchestrator:
    """Owns one tab's game and, in online mode, its room connection.

    Room status moves idle -> waiting (host) -> active -> disconnected, and back
    to idle on teardown. Local and peer moves share the MatchController
    pipeline; peer messages pass an origin check and a staleness check first.
    """

    def __init__(
        self,
        store: KeyValueStore,
        scheduler: Scheduler,
        listener: Optional[SessionListener] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.scheduler = scheduler
        self.listener = listener or SessionListener()
        self.context = SessionContext()
        self.match = MatchController(
            winning_score=self.settings.WINNING_SCORE,
            on_score_changed=self._score_changed,
            on_match_won=self._match_won,
        )
        self.rooms = RoomRegistry(
            store,
            scheduler.now,
            ttl_seconds=self.settings.ROOM_TTL_SECONDS,
            code_length=self.settings.ROOM_CODE_LENGTH,
            key_prefix=self.settings.KEY_PREFIX,
            rng=rng,
        )
        self.leaderboard = Leaderboard(store, scheduler.now, key=self.settings.LEADERBOARD_KEY)
        self.transport: Optional[SyncTransport] = None
        self.heartbeat: Optional[HeartbeatMonitor] = None
        self._countdown = ScopedTimer(scheduler, "countdown")
        self._match_countdown = ScopedTimer(scheduler, "match-countdown")

        # Session start: clear out rooms abandoned by earlier sessions
        self.rooms.sweep_expired()

    # ---- read-only views ----

    @property
    def status(self) -> RoomStatus:
        return self.context.status

    @property
    def remote_active(self) -> bool:
        return self.context.mode is Mode.ONLINE and self.context.status is RoomStatus.ACTIVE

    # ---- mode and names ----

    def select_mode(self, mode: Mode | str) -> None:
        mode = Mode(mode)
        if mode is self.context.mode:
            return
        if mode is Mode.LOCAL:
            self.leave()
            self.context.player_names = default_names()
        self.context.mode = mode

    def set_player_names(self, x_name: str = "", o_name: str = "") -> None:
        defaults = default_names()
        self.context.player_names = {
            X: x_name.strip() or defaults[X],
            O: o_name.strip() or defaults[O],
        }

    # ---- room lifecycle ----

    def create_room(self, host_name: str) -> str:
        """Open a room as host (mark X) and wait for a guest."""
        self.leave()
        code = self.rooms.generate_code()
        self.rooms.create_room(code, host_name)

        ctx = self.context
        ctx.mode = Mode.ONLINE
        ctx.room_code = code
        ctx.role = Role.HOST
        ctx.my_mark = X
        ctx.status = RoomStatus.WAITING
        ctx.player_names = {X: host_name, O: default_names()[O]}
        self._attach(code, X)
        self.listener.on_room_created(code)
        return code

    def join_room(self, code: str, guest_name: str) -> str:
        """Join ``code`` as guest (mark O). Returns the host's name.

        ``RoomNotFound`` and ``RoomFull`` propagate with the session untouched.
        """
        code = normalize_code(code)
        if self.context.role is Role.HOST and self.context.room_code == code:
            raise RoomFull(code)
        room = self.rooms.join_room(code, guest_name)
        if self.context.room_code and self.context.room_code != code:
            self.leave()

        ctx = self.context
        ctx.mode = Mode.ONLINE
        ctx.room_code = code
        ctx.role = Role.GUEST
        ctx.my_mark = O
        ctx.opponent_name = room.host
        ctx.status = RoomStatus.ACTIVE
        ctx.player_names = {X: room.host, O: guest_name}
        self._attach(code, O)
        self.listener.on_room_joined(room.host)
        self._start_online_game()
        return room.host

    def leave(self) -> None:
        """Tell the peer we are leaving, then tear the room down."""
        if self.remote_active and self.transport is not None:
            self.transport.publish_signal("leave")
        self.teardown()

    def new_room(self, host_name: str) -> str:
        self.leave()
        return self.create_room(host_name)

    def go_home(self) -> None:
        self.leave()
        self.select_mode(Mode.LOCAL)

    def teardown(self) -> None:
        """Stop every timer, drop the subscription and delete the room keys. Idempotent."""
        self._countdown.cancel()
        self._match_countdown.cancel()
        if self.heartbeat is not None:
            self.heartbeat.stop()
            self.heartbeat = None
        if self.transport is not None:
            self.transport.unsubscribe()
            self.transport = None
        code = self.context.room_code
        if code is not None:
            self.rooms.delete_room(code)
            logger.info("Left room %s", code)
        self.context.clear_room()

    # ---- moves ----

    def play(self, index: int) -> GameResult:
        """Play a move for this tab; in online mode it is also published to the peer."""
        ctx = self.context
        if ctx.mode is Mode.ONLINE:
            if ctx.status is not RoomStatus.ACTIVE:
                raise IllegalMove("No opponent in this room")
            if self.match.current_player != ctx.my_mark:
                raise NotYourTurn(f"It is {self.match.current_player}'s turn")
        mark = self.match.current_player
        try:
            result = self.match.play(index)
        except IllegalMove as exc:
            logger.debug("Rejected move %r for %s: %s", index, mark, exc)
            raise
        if ctx.mode is Mode.ONLINE and self.transport is not None:
            self.transport.publish_move(index, self.match.board)
        self._after_move(result)
        return result

    # ---- resets ----

    def new_game(self) -> bool:
        """Start the next game of the match; both peers switch together online."""
        if self.remote_active:
            self._publish_signal("new-game")
        return self._new_game_now()

    def reset_match(self) -> None:
        if self.remote_active:
            self._publish_signal("reset-match")
        self._new_match_now()

    # ---- incoming messages ----

    def _on_message(self, message: Message) -> None:
        try:
            match message.kind:
                case "room":
                    self._on_room_changed(message)
                case "move":
                    self._on_move(message)
                case "signal":
                    self._on_signal(message)
                case "heartbeat":
                    if self.heartbeat is not None:
                        self.heartbeat.observe(message)
        except StaleMessage as exc:
            logger.debug("Dropping stale %s in room %s: %s", message.kind, self.context.room_code, exc)

    def _on_room_changed(self, room: RoomRecord) -> None:
        ctx = self.context
        if (
            ctx.role is Role.HOST
            and ctx.status is RoomStatus.WAITING
            and room.status == "active"
            and not ctx.opponent_name
        ):
            ctx.opponent_name = room.guest
            ctx.player_names[O] = room.guest or default_names()[O]
            ctx.status = RoomStatus.ACTIVE
            logger.info("%s joined room %s", room.guest, ctx.room_code)
            self._start_online_game()

    def _on_move(self, message: MoveMessage) -> None:
        ctx = self.context
        if message.player == ctx.my_mark or ctx.status is not RoomStatus.ACTIVE:
            return
        self._ensure_fresh(message.ts)
        ctx.last_remote_ts = message.ts
        if self.transport is not None:
            self.transport.observe_move_number(message.move_number)
        result = self.match.sync(message.cell_index, message.player, message.board)
        self._after_move(result)

    def _on_signal(self, message: SignalMessage) -> None:
        ctx = self.context
        if message.initiator == ctx.my_mark:
            return
        self._ensure_fresh(message.ts)
        ctx.last_remote_ts = message.ts
        logger.info("Peer signal %s in room %s", message.type, ctx.room_code)
        match message.type:
            case "new-game":
                self._new_game_now()
            case "reset-match":
                self._new_match_now()
            case "leave":
                self._handle_disconnect()

    def _ensure_fresh(self, ts: float) -> None:
        if ts <= self.context.last_remote_ts:
            raise StaleMessage(ts, self.context.last_remote_ts)

    # ---- internals ----

    def _attach(self, code: str, mark: Mark) -> None:
        if self.transport is not None:
            self.transport.unsubscribe()
        self.transport = SyncTransport(
            self.store, code, mark, self.scheduler.now, key_prefix=self.settings.KEY_PREFIX
        )
        self.transport.subscribe(self._on_message)

    def _publish_signal(self, type: SignalType) -> None:
        if self.transport is not None:
            self.transport.publish_signal(type)

    def _start_online_game(self) -> None:
        self._new_match_now()
        self.heartbeat = HeartbeatMonitor(
            self.transport,
            self.scheduler,
            on_connected=self._opponent_seen,
            on_disconnected=self._handle_disconnect,
            interval=self.settings.HEARTBEAT_INTERVAL,
            check_interval=self.settings.HEARTBEAT_CHECK_INTERVAL,
            timeout=self.settings.HEARTBEAT_TIMEOUT,
            grace=self.settings.HEARTBEAT_GRACE,
        )
        self.heartbeat.start()
        self._opponent_seen()

    def _opponent_seen(self) -> None:
        ctx = self.context
        if ctx.status is RoomStatus.ACTIVE and not ctx.opponent_online:
            ctx.opponent_online = True
            self.listener.on_opponent_connected()

    def _handle_disconnect(self) -> None:
        # Heartbeat timeout and a peer "leave" may both land here
        ctx = self.context
        if ctx.status is not RoomStatus.ACTIVE:
            return
        ctx.status = RoomStatus.DISCONNECTED
        ctx.opponent_online = False
        if self.heartbeat is not None:
            self.heartbeat.stop()
        self._countdown.cancel()
        self._match_countdown.cancel()
        logger.info("Opponent disconnected from room %s", ctx.room_code)
        self.listener.on_opponent_disconnected()

    def _after_move(self, result: GameResult) -> None:
        self.listener.on_board_changed(self.match.board, self.match.current_player)
        self.listener.on_result(result)
        if result.is_won and self.match.match_active:
            self._countdown.start_once(
                self.settings.COUNTDOWN_SECONDS, self.listener.on_countdown_finished
            )

    def _new_game_now(self) -> bool:
        if not self.match.new_game():
            return False
        self._countdown.cancel()
        self.listener.on_game_reset()
        return True

    def _new_match_now(self) -> None:
        self._countdown.cancel()
        self._match_countdown.cancel()
        self.match.new_match()
        self.listener.on_match_reset()

    def _score_changed(self, mark: Mark, score: int) -> None:
        self.listener.on_score_changed(mark, score)

    def _match_won(self, mark: Mark) -> None:
        ctx = self.context
        self._countdown.cancel()
        # Online, each tab sees the same win; only the winner's tab records it
        if ctx.mode is Mode.LOCAL or mark == ctx.my_mark:
            self.leaderboard.record_win(ctx.player_names[mark])
        self.listener.on_match_won(mark)
        self._match_countdown.start_once(
            self.settings.MATCH_WINNER_COUNTDOWN, self._new_match_now
        )
