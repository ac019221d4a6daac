#!/usr/bin/env python3
"""
01_topic_metadata.py - Topic Metadata and the Cluster View

What this example demonstrates:
- Building a SyncProducer from a SyncProducerConfig
- Sending a TopicMetadataRequest and reading the response
- Resolving partition leaders against a Cluster

Key Concepts:
- Broker: id plus host and port
- Cluster: the client's local view of known brokers
- Error codes in responses are data; raise_for_error() opts into exceptions

Prerequisites:
    - A broker running on localhost:9092
    - pykafkasync installed: pip install -e .

Run with:
    python 01_topic_metadata.py
"""

from pykafkasync import (
    Broker,
    Cluster,
    ErrorCode,
    SyncProducer,
    SyncProducerConfig,
    TopicMetadataRequest,
)


def main():
    config = SyncProducerConfig(host="localhost", port=9092, client_id="metadata-example")
    cluster = Cluster([Broker(1, "localhost", 9092)])

    with SyncProducer(config) as producer:
        print("Requesting metadata for 'orders'...")
        response = producer.send_topic_metadata_request(TopicMetadataRequest.create(["orders"]))

        if response.error_code != ErrorCode.NO_ERROR:
            print(f"Broker reported {ErrorCode.describe(response.error_code)}")

        for topic in response.topics:
            print(f"\nTopic {topic.topic} ({len(topic.partitions)} partitions)")
            for partition in topic.partitions:
                leader = partition.leader(cluster)
                where = leader.connection_string if leader else "no known leader"
                print(f"  partition {partition.partition_id}: {where}, isr={list(partition.isr)}")


if __name__ == "__main__":
    main()
