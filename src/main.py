"""
Main application for the smart-locker kiosk.

Watches the camera for a customer lingering at the locker, raises the price
of the listed item on sustained interest, and lets it decay back toward the
floor otherwise. A small status API serves the kiosk display.

Usage:
    python src/main.py --config config/config.yaml

Arguments:
    --config: Path to configuration file
    --no-web: Do not start the status API
    --fast-forward-days: Advance the pricing clock (demo mode)
    --reset: Forget the saved item and surge state
"""

import os
import sys
import argparse
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import uvicorn
import yaml

from algorithms.presence import PresenceTracker
from algorithms.pricing import PricingEngine
from analytics.online_interest import OnlineInterestSimulator
from detection import HaarFaceDetector, create_face_tracker_from_config
from models.config import PRESENCE_PROFILES, Config, PricingConfig
from models.item import Item
from observation import FaceObservationFeed
from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from runtime.context import RuntimeContext
from runtime.surge_controller import SurgeController
from storage.database import Database
from web.app import create_app
from web.state import state as web_state


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not one of the files above
        explicit = os.path.abspath(config_path)
        if (
            os.path.exists(config_path)
            and explicit != os.path.abspath(local_overrides_path)
            and explicit != os.path.abspath(base_path)
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Required top-level sections
    required_sections = ['pricing', 'camera', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate pricing settings
    pricing = config.get('pricing', {}) or {}
    profile = pricing.get('profile', 'test')
    if profile not in PRESENCE_PROFILES:
        return False, f"pricing.profile must be one of: {', '.join(PRESENCE_PROFILES)}"

    positive_keys = [
        'decay_half_life_hours',
        'listing_duration_days',
        'surge_multiplier',
        'decay_update_interval_seconds',
    ]
    for key in positive_keys:
        if key in pricing and (not _is_number(pricing[key]) or pricing[key] <= 0):
            return False, f"pricing.{key} must be a positive number"

    non_negative_keys = [
        'presence_threshold_seconds',
        'cooldown_duration_seconds',
        'absence_grace_period_seconds',
        'processing_interval_seconds',
    ]
    for key in non_negative_keys:
        if key in pricing and (not _is_number(pricing[key]) or pricing[key] < 0):
            return False, f"pricing.{key} must be a non-negative number"

    if 'max_surge_multiplier' in pricing:
        cap = pricing['max_surge_multiplier']
        if not _is_number(cap) or cap < 1.0:
            return False, "pricing.max_surge_multiplier must be a number >= 1.0"

    # Optional online interest settings
    online = config.get('online_interest', {}) or {}
    if 'surge_probability' in online:
        p = online['surge_probability']
        if not _is_number(p) or not (0 <= p <= 1):
            return False, "online_interest.surge_probability must be between 0 and 1"
    if 'poll_interval_seconds' in online:
        if not _is_number(online['poll_interval_seconds']) or online['poll_interval_seconds'] <= 0:
            return False, "online_interest.poll_interval_seconds must be a positive number"
    for key in ('click_threshold', 'view_threshold', 'wishlist_threshold'):
        if key in online and (not isinstance(online[key], int) or online[key] <= 0):
            return False, f"online_interest.{key} must be a positive integer"

    # Optional fallback item
    item = config.get('item', {}) or {}
    if item:
        start = item.get('starting_price')
        floor = item.get('floor_price')
        if not _is_number(start) or not _is_number(floor):
            return False, "item.starting_price and item.floor_price must be numbers"
        if floor < 0 or floor > start:
            return False, "item.floor_price must be between 0 and item.starting_price"

    # Validate camera settings
    camera = config.get('camera', {})
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if not isinstance(camera['device_id'], (int, str)):
        return False, "camera.device_id must be an integer (index) or string (file path)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"

    if 'resolution' in camera:
        if not isinstance(camera['resolution'], list) or len(camera['resolution']) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in camera['resolution']):
            return False, "camera.resolution values must be positive integers"

    if 'fps' in camera and (not isinstance(camera['fps'], int) or camera['fps'] <= 0):
        return False, "camera.fps must be a positive integer"

    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"

    # Optional detection settings (Haar cascade)
    detection = config.get('detection', {}) or {}
    if 'scale_factor' in detection:
        if not _is_number(detection['scale_factor']) or detection['scale_factor'] <= 1.0:
            return False, "detection.scale_factor must be a number greater than 1.0"
    if 'min_neighbors' in detection:
        if not isinstance(detection['min_neighbors'], int) or detection['min_neighbors'] < 0:
            return False, "detection.min_neighbors must be a non-negative integer"

    # Optional tracking settings (used by FaceTracker)
    tracking = config.get('tracking', {}) or {}
    if 'max_frames_since_seen' in tracking:
        mfs = tracking['max_frames_since_seen']
        if not isinstance(mfs, int) or mfs <= 0:
            return False, "tracking.max_frames_since_seen must be a positive integer"
    if 'iou_threshold' in tracking:
        iou = tracking['iou_threshold']
        if not _is_number(iou) or not (0 < iou <= 1):
            return False, "tracking.iou_threshold must be between 0 and 1"

    # Validate storage settings
    storage = config.get('storage', {})
    if 'local_database_path' not in storage:
        return False, "Missing storage.local_database_path"
    if not isinstance(storage['local_database_path'], str):
        return False, "storage.local_database_path must be a string"

    # Validate log settings
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def build_fallback_item(item_cfg: Dict[str, Any], pricing: PricingConfig, now: datetime) -> Item:
    """Item listed when no saved item exists (demo listing from config)."""
    return Item(
        id=str(item_cfg.get('id', 'item_001')),
        name=item_cfg.get('name', 'Demo item'),
        description=item_cfg.get('description', ''),
        starting_price=float(item_cfg.get('starting_price', 150.0)),
        floor_price=float(item_cfg.get('floor_price', 80.0)),
        listed_at=now - timedelta(hours=float(item_cfg.get('listed_hours_ago', 0))),
        listing_duration=timedelta(days=pricing.listing_duration_days),
        payment_link=item_cfg.get('payment_link'),
    )


def build_runtime(config: Config, db: Optional[Database], kiosk_state=None) -> RuntimeContext:
    """Wire detector, trackers, pricing and the surge controller together."""
    controller = SurgeController(PricingEngine(config.pricing), db)
    tracker = PresenceTracker(
        config.pricing,
        on_price_increase=controller.handle_price_increase,
        on_cooldown_complete=controller.handle_cooldown_complete,
    )
    feed = FaceObservationFeed(
        HaarFaceDetector(config.detection),
        create_face_tracker_from_config(config.tracking),
    )
    interest = OnlineInterestSimulator(config.online_interest) if config.online_interest.enabled else None

    ctx = RuntimeContext(
        config=config,
        db=db,
        feed=feed,
        tracker=tracker,
        controller=controller,
        web_state=kiosk_state,
        interest=interest,
    )
    controller.add_listener(ctx.publish_price)
    return ctx


def main():
    """Main application function."""
    # Parse command-line arguments
    parser = argparse.ArgumentParser(description='Smart-Locker Kiosk')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the status API')
    parser.add_argument('--fast-forward-days', type=float, default=0.0,
                        help='Advance the pricing clock by this many days (demo mode)')
    parser.add_argument('--reset', action='store_true',
                        help='Forget the saved item and surge state')
    args = parser.parse_args()

    # Load configuration
    raw_config = load_config(args.config)

    # Validate configuration
    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    # Setup logging
    setup_logging(raw_config['log_path'], raw_config['log_level'])

    try:
        config = Config.from_dict(raw_config)
    except ValueError as e:
        logging.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.info(
        f"Starting Smart-Locker Kiosk (profile={raw_config['pricing'].get('profile', 'test')}, "
        f"threshold={config.pricing.presence_threshold_seconds}s, "
        f"cooldown={config.pricing.cooldown_duration_seconds}s)"
    )

    db = None
    engine = None
    try:
        # Initialize database
        db = Database(config.storage.local_database_path)
        db.initialize()
        if args.reset:
            db.clear_all()
            logging.info("Saved kiosk state cleared")

        ctx = build_runtime(config, db, kiosk_state=web_state)
        web_state.set_database(db)

        # Restore item, surge and presence from the last run
        fallback = build_fallback_item(raw_config.get('item', {}) or {}, config.pricing, datetime.now())
        presence = ctx.controller.load(fallback, now=time.time())
        ctx.tracker.restore(presence)
        ctx.publish_presence(ctx.tracker.current())

        if args.fast_forward_days:
            ctx.controller.fast_forward(args.fast_forward_days)

        # Initialize Web Interface
        if config.web.enabled and not args.no_web:
            def run_web_app():
                uvicorn.run(
                    create_app(web_state),
                    host=config.web.host,
                    port=config.web.port,
                    log_level="info",
                )

            web_thread = threading.Thread(target=run_web_app, daemon=True)
            web_thread.start()
            logging.info(f"Status API started on port {config.web.port}")

        engine = create_engine_from_config(config, ctx)
        engine.run()

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    except Exception as e:
        logging.exception(f"Error in main loop: {e}")
        sys.exit(1)
    finally:
        if engine is not None:
            engine.stop()
        if db is not None:
            db.close()

        logging.info("Smart-Locker Kiosk stopped")


if __name__ == "__main__":
    main()
