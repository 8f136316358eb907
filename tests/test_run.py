import json
from unittest.mock import MagicMock, patch

from tracking_player.errors import DatasetIOError
from tracking_player.run import main


def _run(argv, run_result="summary", run_error=None):
    fake_player = MagicMock()
    fake_player.run.return_value = run_result
    if run_error is not None:
        fake_player.run.side_effect = run_error
    with patch("tracking_player.run.TrackingPlayer", return_value=fake_player) as mock_player, patch(
        "tracking_player.run.signal.signal"
    ) as mock_signal:
        code = main(argv)
    return code, mock_player, mock_signal


def test_main_builds_player_from_flags():
    """CLI flags map onto PlayerConfig and the player runs once."""
    code, mock_player, mock_signal = _run(
        [
            "--root", "/data/training",
            "--sequence", "4",
            "--frame", "2",
            "--no-velodyne",
            "--synch",
            "--broker-host", "broker",
        ]
    )

    assert code == 0
    cfg = mock_player.call_args.args[0]
    assert cfg.dataset_root == "/data/training"
    assert cfg.sequence == "0004"
    assert cfg.start_frame == 2
    assert cfg.use_velodyne is False
    assert cfg.render_overlay is False
    assert cfg.synch_mode is True
    assert cfg.mqtt.enabled is True
    assert cfg.mqtt.host == "broker"
    mock_player.return_value.run.assert_called_once()
    assert mock_signal.call_count >= 1


def test_tracklets_flag_with_and_without_path():
    _, mock_player, _ = _run(["--tracklets"])
    cfg = mock_player.call_args.args[0]
    assert cfg.draw_tracklets is True
    assert cfg.tracklets_path is None

    _, mock_player, _ = _run(["--tracklets", "labels.xml", "--labels"])
    cfg = mock_player.call_args.args[0]
    assert cfg.tracklets_path == "labels.xml"
    assert cfg.draw_labels is True


def test_config_file_with_overrides(tmp_path):
    cfg_path = tmp_path / "player.json"
    cfg_path.write_text(json.dumps({"sequence": "0011", "max_frames": 50}), encoding="utf-8")

    code, mock_player, _ = _run(["--config", str(cfg_path), "--max-frames", "5", "--frequency", "0"])
    assert code == 0
    cfg = mock_player.call_args.args[0]
    assert cfg.sequence == "0011"
    assert cfg.max_frames == 5
    assert cfg.frequency_hz == 0.0


def test_playback_error_exits_one():
    code, _, _ = _run([], run_error=DatasetIOError("missing"))
    assert code == 1


def test_config_error_exits_two(tmp_path):
    code, mock_player, _ = _run(["--config", str(tmp_path / "missing.yaml")])
    assert code == 2
    mock_player.assert_not_called()

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"camera": "left"}), encoding="utf-8")
    code, _, _ = _run(["--config", str(bad)])
    assert code == 2


def test_undecodable_dataset_file_exits_one(dataset_root, tmp_path):
    (dataset_root / "oxts" / "0000.txt").write_bytes(b"\xff\xfe garbage\n")
    argv = ["--root", str(dataset_root), "--out", str(tmp_path / "sessions"), "--frequency", "0"]
    with patch("tracking_player.run.signal.signal"):
        assert main(argv) == 1
