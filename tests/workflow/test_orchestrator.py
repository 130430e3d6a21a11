import time

import pytest

from teamchat.agents.base import Agent
from teamchat.agents.user_proxy import TERMINATE, HumanInputMode, UserProxyAgent
from teamchat.exceptions import ConfigurationError, TransitionGuardError
from teamchat.schemas.messages import Message, Task
from teamchat.workflows.graph import Graph, Transition, last_speaker_is
from teamchat.workflows.orchestrator import ConversationOutcome, GroupChat, GroupChatManager


class ScriptedAgent(Agent):
    def __init__(self, name, replies=None):
        super().__init__(name=name)
        self.replies = list(replies or [])
        self.seen = []

    def _generate(self, history, options):
        self.seen.append(len(history))
        content = self.replies.pop(0) if self.replies else f"{self.name} working"
        return Message(speaker=self.name, content=content)


class FailingAgent(Agent):
    def _generate(self, history, options):
        raise RuntimeError("backend unavailable")


def coding_loop():
    return Graph(
        [
            Transition("admin", "coder", last_speaker_is("admin")),
            Transition("coder", "reviewer"),
            Transition("reviewer", "admin"),
        ]
    )


def loop_chat(**kwargs):
    members = [ScriptedAgent("admin"), ScriptedAgent("coder"), ScriptedAgent("reviewer", kwargs.pop("reviewer", None))]
    return GroupChat(members=members, graph=coding_loop(), **kwargs)


def test_graph_walk_speaker_sequence():
    result = GroupChatManager(loop_chat()).initiate("Build a parser", max_rounds=4, initiator="admin")

    assert result.speakers[:4] == ["admin", "coder", "reviewer", "admin"]
    assert result.outcome == ConversationOutcome.MAX_ROUNDS
    assert result.rounds == 4


def test_history_grows_by_one_per_round():
    result = GroupChatManager(loop_chat()).initiate(Task(id="t1", description="task"), max_rounds=5, initiator="admin")

    assert len(result.history) == result.rounds + 1
    assert [m.position for m in result.history] == list(range(6))
    assert result.history[0].content == "task"


def test_cycle_with_always_true_guards_stops_at_cap():
    chat = GroupChat(
        members=[ScriptedAgent("a"), ScriptedAgent("b")],
        graph=Graph([Transition("a", "b", lambda f, t, h: True), Transition("b", "a", lambda f, t, h: True)]),
    )
    result = GroupChatManager(chat).initiate("ping", max_rounds=7, initiator="a")

    assert result.rounds == 7
    assert len(result.history) == 8
    assert result.outcome == ConversationOutcome.MAX_ROUNDS


def test_zero_round_budget_returns_opening_message_only():
    result = GroupChatManager(loop_chat()).initiate("task", max_rounds=0, initiator="admin")

    assert result.speakers == ["admin"]
    assert result.outcome == ConversationOutcome.MAX_ROUNDS


def test_negative_round_budget_is_rejected():
    with pytest.raises(ValueError):
        GroupChatManager(loop_chat()).initiate("task", max_rounds=-1)


def test_termination_sentinel_ends_conversation():
    result = GroupChatManager(loop_chat(reviewer=[TERMINATE])).initiate("task", max_rounds=10, initiator="admin")

    assert result.outcome == ConversationOutcome.COMPLETED
    assert result.rounds == 2
    assert result.last_message.speaker == "reviewer"


def test_zero_candidates_escalate_to_admin():
    group_admin = ScriptedAgent("group_admin", ["From coder"])
    chat = GroupChat(
        members=[ScriptedAgent("admin"), ScriptedAgent("coder")],
        admin=group_admin,
        graph=Graph([Transition("coder", "admin")]),
    )
    result = GroupChatManager(chat).initiate("task", max_rounds=2, initiator="user")

    assert result.speakers == ["user", "coder", "admin"]
    assert group_admin.seen == [2]


def test_stalls_when_admin_names_no_valid_speaker():
    chat = GroupChat(
        members=[ScriptedAgent("admin"), ScriptedAgent("coder")],
        admin=ScriptedAgent("group_admin", ["From nobody"]),
        graph=Graph([Transition("coder", "admin")]),
    )
    result = GroupChatManager(chat).initiate("task", max_rounds=5, initiator="admin")

    assert result.outcome == ConversationOutcome.STALLED
    assert result.rounds == 0
    assert result.speakers == ["admin"]


def test_stalls_without_admin():
    chat = GroupChat(members=[ScriptedAgent("admin"), ScriptedAgent("coder")], graph=Graph([]))
    result = GroupChatManager(chat).initiate("task", max_rounds=5, initiator="admin")

    assert result.outcome == ConversationOutcome.STALLED


def test_stalls_when_admin_fails():
    chat = GroupChat(
        members=[ScriptedAgent("admin"), ScriptedAgent("coder")],
        admin=FailingAgent("group_admin"),
        graph=Graph([]),
    )
    assert GroupChatManager(chat).initiate("task", max_rounds=5).outcome == ConversationOutcome.STALLED


def test_multiple_candidates_escalate_to_admin():
    group_admin = ScriptedAgent("group_admin", ["From reviewer"])
    chat = GroupChat(
        members=[ScriptedAgent("admin"), ScriptedAgent("coder"), ScriptedAgent("reviewer")],
        admin=group_admin,
        graph=Graph([Transition("admin", "coder"), Transition("admin", "reviewer")]),
    )
    result = GroupChatManager(chat).initiate("task", max_rounds=1, initiator="admin")

    assert result.speakers == ["admin", "reviewer"]


def test_without_graph_every_member_is_a_choice():
    group_admin = ScriptedAgent("group_admin", ["From b", "From a"])
    chat = GroupChat(members=[ScriptedAgent("a"), ScriptedAgent("b")], admin=group_admin)
    result = GroupChatManager(chat).initiate("task", max_rounds=2)

    assert result.speakers == ["user", "b", "a"]


def test_generation_failure_becomes_a_message():
    chat = GroupChat(
        members=[FailingAgent("coder"), ScriptedAgent("reviewer")],
        graph=Graph([Transition("admin", "coder"), Transition("coder", "reviewer")]),
    )
    result = GroupChatManager(chat).initiate("task", max_rounds=2, initiator="admin")

    failed = result.history[1]
    assert failed.speaker == "coder"
    assert failed.is_error
    assert failed.content == "Error: RuntimeError: backend unavailable"
    assert result.speakers == ["admin", "coder", "reviewer"]


def test_repeated_failures_end_the_run():
    chat = GroupChat(members=[FailingAgent("coder")], graph=Graph([Transition("coder", "coder")]))
    result = GroupChatManager(chat, max_consecutive_failures=1).initiate("task", max_rounds=10, initiator="coder")

    assert result.outcome == ConversationOutcome.FAILED
    assert result.rounds == 2
    assert all(m.is_error for m in result.history[1:])


def test_turn_timeout_is_a_failed_turn():
    class SlowAgent(Agent):
        def _generate(self, history, options):
            time.sleep(0.2)
            return Message(speaker=self.name, content="late")

    chat = GroupChat(members=[SlowAgent("coder")], graph=Graph([Transition("admin", "coder")]))
    result = GroupChatManager(chat, turn_timeout=0.05).initiate("task", max_rounds=1, initiator="admin")

    assert result.history[1].is_error
    assert "GenerationTimeout" in result.history[1].content


def test_turn_timeout_is_handed_to_the_speaker():
    seen = []

    class Recorder(Agent):
        def _generate(self, history, options):
            seen.append(options.timeout)
            return Message(speaker=self.name, content="done")

    chat = GroupChat(members=[Recorder("coder")], graph=Graph([Transition("admin", "coder")]))
    GroupChatManager(chat, turn_timeout=3.0).initiate("task", max_rounds=1, initiator="admin")

    assert seen == [3.0]


def test_slow_speaker_finishes_before_next_speaker_starts():
    active = set()
    overlaps = []

    class Tracked(Agent):
        def __init__(self, name, delay):
            super().__init__(name=name)
            self.delay = delay

        def _generate(self, history, options):
            overlaps.append(sorted(active))
            active.add(self.name)
            time.sleep(self.delay)
            active.discard(self.name)
            return Message(speaker=self.name, content=f"{self.name} done")

    chat = GroupChat(
        members=[Tracked("coder", 0.3), Tracked("reviewer", 0.0)],
        graph=Graph([Transition("admin", "coder"), Transition("coder", "reviewer")]),
    )
    result = GroupChatManager(chat, turn_timeout=0.05).initiate("task", max_rounds=2, initiator="admin")

    assert result.speakers == ["admin", "coder", "reviewer"]
    assert result.history[1].is_error
    assert overlaps == [[], []]


def test_reply_is_stamped_with_selected_speaker():
    class Impostor(Agent):
        def _generate(self, history, options):
            return Message(speaker="someone_else", content="hi")

    chat = GroupChat(members=[Impostor("coder")], graph=Graph([Transition("admin", "coder")]))
    result = GroupChatManager(chat).initiate("task", max_rounds=1, initiator="admin")

    assert result.history[1].speaker == "coder"


def test_guard_errors_propagate():
    def broken(from_agent, to_agent, history):
        raise ValueError("bad guard")

    chat = GroupChat(members=[ScriptedAgent("coder")], graph=Graph([Transition("coder", "coder", broken)]))
    with pytest.raises(TransitionGuardError):
        GroupChatManager(chat).initiate("task", max_rounds=3, initiator="coder")


def test_user_declining_completes_the_conversation():
    user = UserProxyAgent("user", human_input_mode=HumanInputMode.ALWAYS, input_fn=lambda _: "exit")
    chat = GroupChat(
        members=[ScriptedAgent("admin"), user],
        graph=Graph([Transition("user", "admin"), Transition("admin", "user")]),
    )
    result = GroupChatManager(chat).initiate("task", max_rounds=10, initiator="user")

    assert result.outcome == ConversationOutcome.COMPLETED
    assert result.speakers == ["user", "admin", "user"]
    assert result.detail == "user declined to continue"


def test_group_chat_validation():
    with pytest.raises(ConfigurationError):
        GroupChat(members=[ScriptedAgent("a"), ScriptedAgent("a")])
    with pytest.raises(ConfigurationError):
        GroupChat(members=[ScriptedAgent("a")], graph=Graph([Transition("a", "ghost")]))
