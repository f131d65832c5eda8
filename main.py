import sys

from services.ota_service.bootstrap import main

if __name__ == "__main__":
    sys.exit(main())
