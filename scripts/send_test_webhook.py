import os
import sys
import hmac
import hashlib
import json
import requests
from dotenv import load_dotenv

# Load .env variables
load_dotenv()

# Secret returned when the repository was registered via POST /settings
SECRET = os.getenv("HOOK_SECRET", "")
URL = os.getenv("HOOK_URL", "http://127.0.0.1:5000/hook")
REPO_URL = os.getenv("REPOSITORY_URL", "https://gitea.example.com/myuser/myrepo")
TICKET = sys.argv[1] if len(sys.argv) > 1 else "1"

# Gitea-style push payload
payload = {
    "ref": "refs/heads/main",
    "after": "3f786850e387550fdab836ed7e6dc881de23001b",
    "repository": {"html_url": REPO_URL, "clone_url": REPO_URL + ".git"},
    "pusher": {"login": "myuser", "full_name": "My User", "email": "myuser@example.com"},
    "commits": [
        {
            "id": "3f786850e387550fdab836ed7e6dc881de23001b",
            "message": f"Fix the login redirect #{TICKET}",
            "url": f"{REPO_URL}/commit/3f786850e387550fdab836ed7e6dc881de23001b",
            "author": {"name": "My User", "email": "myuser@example.com", "username": "myuser"},
        }
    ],
}

# Convert payload to JSON bytes
data = json.dumps(payload).encode("utf-8")

headers = {"Content-Type": "application/json", "X-Gitea-Event": "push"}
if SECRET:
    headers["X-Gitea-Signature"] = hmac.new(SECRET.encode(), data, hashlib.sha256).hexdigest()

resp = requests.post(URL, headers=headers, data=data, timeout=10)

print("Status:", resp.status_code)
print("Response:", resp.json())
