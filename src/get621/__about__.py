# SPDX-FileCopyrightText: 2025-present Xarblu <xarblu@protonmail.com>
#
# SPDX-License-Identifier: MIT
__version__ = "1.2.0"
