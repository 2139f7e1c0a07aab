# This file is part of clusternet. See LICENSE file for license information.
