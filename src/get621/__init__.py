# SPDX-FileCopyrightText: 2025-present Xarblu <xarblu@protonmail.com>
#
# SPDX-License-Identifier: MIT
