from helpers import make_ready

from player.engine import PlaybackState, PlayerProps
from player.resume import ResumeController

SRC = "http://media.local/api/items/7/stream"


def _props(**kw):
    kw.setdefault("media_source", SRC)
    kw.setdefault("item_id", "7")
    kw.setdefault("autoplay", True)
    return PlayerProps(**kw)


def test_prompt_shown_for_saved_progress_and_blocks_autoplay(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props())
    make_ready(engine, element)
    view = engine.snapshot()
    assert view.resume_prompt is True
    assert view.resume_position == 120.0
    assert engine.state is PlaybackState.PAUSED
    assert element.count("play") == 0


def test_progress_at_threshold_does_not_prompt(engine, element, store):
    store.save_progress("7", 5.0)
    engine.set_source(_props())
    make_ready(engine, element)
    assert engine.snapshot().resume_prompt is False
    assert engine.state is PlaybackState.PLAYING


def test_play_ignored_while_prompt_visible(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props())
    make_ready(engine, element)
    engine.play()
    engine.toggle_play()
    assert engine.state is PlaybackState.PAUSED
    assert element.count("play") == 0


def test_continue_after_metadata_seeks_and_plays(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props())
    make_ready(engine, element)
    engine.continue_watching()
    assert element.last("seek") == ("seek", 120.0)
    assert engine.state is PlaybackState.PLAYING
    assert engine.snapshot().current_time == 120.0
    assert engine.snapshot().resume_prompt is False


def test_continue_before_metadata_applies_on_load(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props())
    engine.continue_watching()
    assert element.count("seek") == 0
    make_ready(engine, element)
    assert element.last("seek") == ("seek", 120.0)
    assert engine.state is PlaybackState.PLAYING


def test_start_over_clears_entry_and_plays_from_zero(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props())
    make_ready(engine, element)
    engine.start_over()
    assert store.progress("7") is None
    assert element.last("seek") == ("seek", 0.0)
    assert engine.state is PlaybackState.PLAYING


def test_dismissed_prompt_stays_hidden_after_retry(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props())
    make_ready(engine, element)
    engine.continue_watching()
    engine.on_error("network")
    engine.retry()
    assert engine.snapshot().resume_prompt is False
    make_ready(engine, element)
    assert element.last("seek") == ("seek", 120.0)
    assert engine.state is PlaybackState.PLAYING


def test_prompt_returns_for_a_new_item(engine, element, store):
    store.save_progress("7", 120.0)
    store.save_progress("8", 60.0)
    engine.set_source(_props())
    make_ready(engine, element)
    engine.continue_watching()
    engine.set_source(_props(item_id="8", media_source="http://media.local/api/items/8/stream"))
    assert engine.snapshot().resume_prompt is True
    assert engine.snapshot().resume_position == 60.0


def test_controller_without_item_never_prompts(store):
    rc = ResumeController(store)
    rc.reset(None)
    assert rc.evaluate() is False
    assert rc.choose_continue() is None
    assert rc.dismissed is True


def test_controller_ignores_corrupt_progress(store):
    store.write("progressByItem", {"7": "not-a-number"})
    rc = ResumeController(store)
    rc.reset("7")
    assert rc.evaluate() is False


def test_continue_survives_quality_switch_before_metadata(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props(available_qualities=["720p"]))
    engine.continue_watching()
    engine.select_quality("720p")
    assert element.last("load") == ("load", SRC + "?quality=720p")
    make_ready(engine, element)
    assert element.last("seek") == ("seek", 120.0)
    assert engine.snapshot().current_time == 120.0
    assert engine.state is PlaybackState.PLAYING


def test_start_over_survives_quality_switch_before_metadata(engine, element, store):
    store.save_progress("7", 120.0)
    engine.set_source(_props(available_qualities=["720p"]))
    engine.start_over()
    engine.select_quality("720p")
    make_ready(engine, element)
    assert element.last("seek") == ("seek", 0.0)
    assert engine.state is PlaybackState.PLAYING
