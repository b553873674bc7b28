from player.tracker import ViewTracker


def _feed(tracker, times, playing=True):
    for t in times:
        tracker.observe(t, playing=playing)


def _steps(start, stop, step=0.5):
    out = []
    t = start
    while t <= stop + 1e-9:
        out.append(t)
        t += step
    return out


def test_contiguous_updates_accrue():
    tr = ViewTracker()
    _feed(tr, _steps(0, 10))
    assert tr.played_seconds == 10.0
    assert tr.view_tracked is False


def test_jumps_and_rewinds_do_not_accrue():
    tr = ViewTracker()
    _feed(tr, [0.0, 1.0, 2.0])
    _feed(tr, [50.0])      # forward seek
    _feed(tr, [50.5, 51.0])
    _feed(tr, [10.0])      # rewind
    _feed(tr, [10.0])      # no movement
    _feed(tr, [12.0])      # exactly the jump limit
    assert tr.played_seconds == 3.0
    assert tr.last_time == 12.0


def test_seek_then_thirty_seconds_fires_exactly_once():
    calls = []
    tr = ViewTracker(on_view=lambda: calls.append(1))
    _feed(tr, [0.0])
    _feed(tr, [100.0])
    _feed(tr, _steps(100.5, 129.5))
    assert calls == []
    _feed(tr, _steps(130.0, 200.0))
    assert calls == [1]
    assert tr.view_tracked is True


def test_pause_near_threshold_still_fires_once():
    calls = []
    tr = ViewTracker(on_view=lambda: calls.append(1))
    _feed(tr, _steps(0, 29.5))
    _feed(tr, [29.5, 29.5], playing=False)
    _feed(tr, _steps(30.0, 45.0))
    _feed(tr, [45.0], playing=False)
    _feed(tr, _steps(45.5, 80.0))
    assert calls == [1]


def test_paused_updates_move_the_reference_point():
    tr = ViewTracker()
    _feed(tr, [0.0, 1.0])
    tr.observe(1.5, playing=False)
    tr.observe(2.0, playing=True)
    assert tr.played_seconds == 1.5


def test_callback_failure_is_swallowed():
    def boom():
        raise RuntimeError("network down")

    tr = ViewTracker(on_view=boom, threshold=1.0)
    _feed(tr, [0.0, 0.5, 1.0, 1.5])
    assert tr.view_tracked is True


def test_reset_clears_everything():
    tr = ViewTracker(threshold=1.0)
    _feed(tr, [0.0, 0.5, 1.0])
    assert tr.view_tracked is True
    tr.reset()
    assert tr.played_seconds == 0.0
    assert tr.last_time == 0.0
    assert tr.view_tracked is False


def test_first_update_of_a_session_accrues_from_zero():
    calls = []
    tr = ViewTracker(on_view=lambda: calls.append(1))
    _feed(tr, _steps(0.5, 30.0))
    assert tr.played_seconds == 30.0
    assert calls == [1]
    tr.reset()
    _feed(tr, [0.5])
    assert tr.played_seconds == 0.5
