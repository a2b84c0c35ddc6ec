# gera linhas JSON falsas no stdout para alimentar o transporte:
#   python tools/generate_fake_logs.py 5000 | python -m logsink.main --dir logs --size 10K
import json
import random
import sys
import time

LEVELS = (20, 30, 30, 30, 40, 50)
MESSAGES = (
    "request handled",
    "cache miss",
    "upstream lento",
    "conexão recusada",
    "job concluído",
)


def generate(total: int, out=sys.stdout) -> None:
    base = time.time()
    for i in range(total):
        record = {
            "level": random.choice(LEVELS),
            "time": int((base + i) * 1000),
            "pid": 4242,
            "hostname": "fake-host",
            "msg": random.choice(MESSAGES),
            "req_id": f"r{i:06d}",
            "duration_ms": round(random.uniform(0.5, 250.0), 2),
        }
        out.write(json.dumps(record) + "\n")


if __name__ == "__main__":
    generate(int(sys.argv[1]) if len(sys.argv) > 1 else 2000)
