"""
Pressure drill: publishes synthetic memory samples that climb into
high pressure, heavy swap and fragmentation, then recover.

Usage:
    python scripts/pressure_drill.py --brokers localhost:9092 --duration 60

Watch /analytics on memory-analytics: recommendations should appear while
the drill ramps up and clear once it returns to baseline.
"""
import argparse
import json
import sys
import time
from datetime import datetime, timezone

from confluent_kafka import KafkaException, Producer

GIB = 1024 ** 3


def build_sample(host: str, stress: float, faults: int) -> dict:
    """Build one sample; stress in [0, 1] scales available memory and free swap down."""
    total = 16 * GIB
    swap_total = 4 * GIB
    available = int(total * (0.6 - 0.55 * stress))
    swap_free = int(swap_total * (1.0 - 0.97 * stress))
    return {
        "host": host,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total": total,
        "free": available // 2,
        "available": available,
        "swap_total": swap_total,
        "swap_free": swap_free,
        "major_faults": faults // 100,
        "minor_faults": faults,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Drive memory-analytics into high pressure")
    parser.add_argument("--brokers", default="localhost:9092")
    parser.add_argument("--topic", default="memory.samples")
    parser.add_argument("--host", default="drill-host")
    parser.add_argument("--duration", type=int, default=60, help="Ramp duration in seconds")
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between samples")
    parser.add_argument("--fault-rate", type=int, default=5000, help="Minor faults per sample at peak")
    args = parser.parse_args()

    print(f"""
=== Pressure Drill: Memory Analytics ===
Brokers:  {args.brokers}
Topic:    {args.topic}
Host:     {args.host}
Duration: {args.duration}s ramp, then recovery
""")

    producer = Producer({"bootstrap.servers": args.brokers, "client.id": "pressure-drill"})
    steps = max(1, int(args.duration / args.interval))
    faults = 0
    sent = 0

    # Ramp up, then mirror back down to baseline
    schedule = [i / steps for i in range(steps + 1)]
    schedule += list(reversed(schedule[:-1]))

    try:
        for stress in schedule:
            faults += int(args.fault_rate * stress)
            sample = build_sample(args.host, stress, faults)
            producer.produce(
                topic=args.topic,
                key=args.host.encode("utf-8"),
                value=json.dumps(sample).encode("utf-8"),
            )
            producer.poll(0)
            sent += 1
            print(f"  [{sent:4d}] stress={stress:.2f} available={sample['available'] // (1024 ** 2)} MiB "
                  f"swap_free={sample['swap_free'] // (1024 ** 2)} MiB")
            time.sleep(args.interval)
    except KafkaException as e:
        print(f"  ERROR publishing sample: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.")
    finally:
        producer.flush(10)

    print(f"\n=== Drill complete: {sent} samples published ===")


if __name__ == "__main__":
    main()
