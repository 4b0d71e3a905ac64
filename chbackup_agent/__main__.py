# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

from chbackup_agent.cli import main

if __name__ == "__main__":
    main()
