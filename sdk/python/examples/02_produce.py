#!/usr/bin/env python3
"""
02_produce.py - Producing Messages and Handling Failures

What this example demonstrates:
- Building a ProducerRequest for several partitions
- Waiting for an acknowledgement (required_acks=1)
- Fire and forget (required_acks=0)
- Retrying after a TransportError

Key Concepts:
- The producer never retries on its own
- After a TransportError the connection is already dropped;
  the next request reconnects

Prerequisites:
    - A broker running on localhost:9092
    - pykafkasync installed: pip install -e .

Run with:
    python 02_produce.py
"""

import time

from pykafkasync import (
    ConnectError,
    Message,
    ProducerRequest,
    SyncProducer,
    SyncProducerConfig,
    TopicAndPartition,
    TransportError,
)


def send_with_retry(producer, request, attempts=3):
    for attempt in range(1, attempts + 1):
        try:
            return producer.send_produce_request(request)
        except (ConnectError, TransportError) as e:
            print(f"Attempt {attempt} failed: {e}")
            if attempt == attempts:
                raise
            time.sleep(0.5 * attempt)


def main():
    config = SyncProducerConfig(host="localhost", port=9092, client_id="produce-example")

    with SyncProducer(config) as producer:
        request = ProducerRequest.create(
            {
                TopicAndPartition("orders", 0): [Message(b"order-1", key=b"customer-7")],
                TopicAndPartition("orders", 1): [Message(b"order-2"), Message(b"order-3")],
            },
            client_id=config.client_id,
            required_acks=1,
        )
        ack = send_with_retry(producer, request)
        for tp, status in ack.status.items():
            print(f"{tp.topic}-{tp.partition}: error={status.error} offset={status.offset}")

        print("\nFire and forget...")
        fire_and_forget = ProducerRequest.create(
            {TopicAndPartition("audit", 0): [Message(b"login")]},
            client_id=config.client_id,
            required_acks=0,
        )
        assert producer.send_produce_request(fire_and_forget) is None
        print("Sent without waiting for a response")


if __name__ == "__main__":
    main()
