"""Replay a Recall.ai transcript webhook against a locally running relay.

    python scripts/send_test_webhook.py --bot-id <externalBotId> "We should discuss oranges"
"""
import argparse

import httpx

parser = argparse.ArgumentParser()
parser.add_argument('--base-url', default='http://localhost:8000')
parser.add_argument('--bot-id', required=True)
parser.add_argument('--speaker', default='Test Speaker')
parser.add_argument('--event', default='transcript.data', choices=['transcript.data', 'transcript.partial_data'])
parser.add_argument('sentence')
args = parser.parse_args()

words = [
    {'text': word, 'start_timestamp': {'relative': idx * 0.4}, 'end_timestamp': None}
    for idx, word in enumerate(args.sentence.split())
]
payload = {
    'event': args.event,
    'data': {
        'data': {'words': words, 'participant': {'id': 1, 'name': args.speaker, 'is_host': False, 'platform': None, 'extra_data': {}}},
        'bot': {'id': args.bot_id, 'metadata': {}},
    },
}

response = httpx.post(f"{args.base_url.rstrip('/')}/api/webhook", json=payload, timeout=10.0)
print(response.status_code, response.json())
