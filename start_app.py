import os

from dotenv import load_dotenv

dotenv_path = os.getenv('TRENDS_DOTENV', '.env')
load_dotenv(dotenv_path)

from app import app  # noqa: E402

if __name__ == '__main__':
    # Set default host and port
    host = os.getenv('HOST', '127.0.0.1')
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('DEBUG', 'False').lower() == 'true'

    from trends import SETTINGS

    print(f"Starting trend ranker on {host}:{port}")
    print("API Status Check:")
    print(f"  Perplexity configured: {bool(SETTINGS.perplexity_api_key)}")
    print(f"  YouTube configured: {bool(SETTINGS.youtube_api_key)}")

    if not SETTINGS.perplexity_api_key:
        print("\n[WARN] Perplexity key missing; trends are ranked by the basic engagement score only.")

    print(f"\nAccess URL: http://{host}:{port}/api/trends")

    app.run(host=host, port=port, debug=debug, threaded=True)
