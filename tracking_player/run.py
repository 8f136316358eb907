import argparse
import signal
import sys

from .config import MqttConfig, PlayerConfig, load_config
from .errors import ConfigError, PlayerError
from .player import TrackingPlayer


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Replay a KITTI tracking sequence")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--root", help="Dataset root (the training/ or testing/ directory)")
    ap.add_argument("--sequence")
    ap.add_argument("--camera", type=int)
    ap.add_argument("--frame", type=int, help="Start frame")
    ap.add_argument("--origin-frame", type=int)
    ap.add_argument("--frequency", type=float, help="Playback rate in Hz; 0 plays unthrottled")
    ap.add_argument("--synch", action="store_true", help="Wait for an advance signal per frame")
    ap.add_argument("--no-color", action="store_true")
    ap.add_argument("--no-velodyne", action="store_true")
    ap.add_argument("--no-oxts", action="store_true")
    ap.add_argument("--overlay", action="store_true")
    ap.add_argument("--no-overlay", action="store_true")
    ap.add_argument("--labels", action="store_true", help="Draw label_02 boxes")
    ap.add_argument("--tracklets", nargs="?", const="", metavar="XML",
                    help="Draw tracklet boxes, optionally loaded from a tracklet XML")
    ap.add_argument("--out")
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--no-csv", action="store_true")
    ap.add_argument("--save-annotated", action="store_true")
    ap.add_argument("--broker-host")
    ap.add_argument("--broker-port", type=int)
    ap.add_argument("--topic-prefix")

    return ap


def _flag(on: bool, off: bool = False):
    if on:
        return True
    if off:
        return False
    return None


def _apply_args(cfg: PlayerConfig, args: argparse.Namespace) -> PlayerConfig:
    draw_tracklets = None
    tracklets_path = None
    if args.tracklets is not None:
        draw_tracklets = True
        tracklets_path = args.tracklets or None

    cfg.apply_overrides(
        dataset_root=args.root,
        sequence=args.sequence.zfill(4) if args.sequence else None,
        camera=args.camera,
        start_frame=args.frame,
        origin_frame=args.origin_frame,
        frequency_hz=args.frequency,
        synch_mode=_flag(args.synch),
        use_color=_flag(False, args.no_color),
        use_velodyne=_flag(False, args.no_velodyne),
        use_oxts=_flag(False, args.no_oxts),
        render_overlay=_flag(args.overlay, args.no_overlay),
        draw_labels=_flag(args.labels),
        draw_tracklets=draw_tracklets,
        tracklets_path=tracklets_path,
        session_root=args.out,
        max_frames=args.max_frames,
        save_csv=_flag(False, args.no_csv),
        save_annotated=_flag(args.save_annotated),
    )

    # overlay defaults on; turn it off quietly when a stream it needs is disabled
    if not args.overlay and not (cfg.use_color and cfg.use_velodyne):
        cfg.render_overlay = False

    if args.broker_host or args.broker_port or args.topic_prefix:
        mq = cfg.mqtt or MqttConfig()
        mq.enabled = True
        if args.broker_host:
            mq.host = args.broker_host
        if args.broker_port:
            mq.port = args.broker_port
        if args.topic_prefix:
            mq.topic_prefix = args.topic_prefix
        cfg.mqtt = mq
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    if args.config:
        try:
            cfg = load_config(args.config)
        except (FileNotFoundError, ConfigError) as exc:
            print(f"config error: {exc}", file=sys.stderr)
            return 2
    else:
        cfg = PlayerConfig()
    cfg = _apply_args(cfg, args)

    player = TrackingPlayer(cfg)

    def _handle_signal(_sig, _frame):
        player.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        summary = player.run()
    except PlayerError:
        return 1
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
