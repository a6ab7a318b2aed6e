# This module assembles the context sent with every chat request

# +---------------------+     +---------------------+     +---------------------+
# |   Active document   |     |  Vector index       |     |  User attachments   |
# |---------------------|     |---------------------|     |---------------------|
# | live copy or disk   |     | ranked chunks for   |     | @file, @rule,       |
# | window at cursor    |     | @workspace queries  |     | @prompt, code       |
# +---------------------+     +---------------------+     +---------------------+
#            \                          |                          /
#             \                         |                         /
#              v                        v                        v
#          +----------------------------------------------------------+
#          |                   Context bundle                         |
#          |----------------------------------------------------------|
#          | deduplicated, first seen wins                            |
#          | <= 100 documents, each <= 40,960 chars                   |
#          +----------------------------------------------------------+
#                                       |
#                                       v
#                        [ChatCommand -> RequestManager]
